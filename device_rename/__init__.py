"""device-rename: converge endpoint computer names to a hardware-derived scheme."""

__version__ = "1.0.0"
