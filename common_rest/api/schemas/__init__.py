# This file marks the schemas package for API response models.
# Collection endpoints return raw documents, so only operational responses are modelled here.
