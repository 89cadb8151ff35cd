"""
Domain constants used across services/routers.
"""

# Prefix of every generated order external reference (ord_<utc-stamp>_<hex>)
EXTERNAL_REFERENCE_PREFIX = "ord"

# Causation ids for transitions not driven by a gateway payment
CAUSATION_GATEWAY_FAILURE = "checkout:gateway_error"
CAUSATION_OPERATOR_SHIP = "operator:ship"

# Mercado Pago notification topic carrying payment updates
WEBHOOK_PAYMENT_TOPIC = "payment"
