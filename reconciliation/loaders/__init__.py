from reconciliation.loaders.order_loader import OrderLoader

__all__ = ["OrderLoader"]
