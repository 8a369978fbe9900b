# This file marks the routers package for API route modules.
# Operational endpoints live in `health`; collection endpoints are bound by `common_route`.
