"""SnazzPay Secure-COD order lifecycle service"""

__version__ = "1.0.0"
