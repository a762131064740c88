"""relpack: package a pre-built release into one self-contained executable per target."""

__version__ = "0.1.0"
