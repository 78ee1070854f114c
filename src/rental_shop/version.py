"""Version metadata for RentalShop."""

__app_name__ = "RentalShop"
__company__ = "Rento"
__version__ = "0.4.0"
