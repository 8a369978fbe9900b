# This file marks the controller package for the generic collection controller.
# It exists so the query translation, error types, and verb handlers share one import path.
# Transport binding lives in `common_rest.api.routers.common_route`.
