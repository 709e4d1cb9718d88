"""geopin: address geocoding, autocomplete and pin placement for listings."""

__version__ = "0.1.0"
