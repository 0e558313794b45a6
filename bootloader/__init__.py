"""bbl: stand up and tear down a BOSH director and its infrastructure."""

__version__ = "0.4.0"
