"""Register-level access to a Nexys2 FPGA board over its USB EPP bridge."""

__version__ = "0.1.0"
