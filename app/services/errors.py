"""Fulfillment failures that map to a specific HTTP status at the webhook."""


class FulfillmentError(Exception):
    status_code = 500


class MissingCustomerEmailError(FulfillmentError):
    status_code = 400


class UnknownProductError(FulfillmentError):
    status_code = 500


class LicenseCodeCollisionError(FulfillmentError):
    status_code = 500
