"""Web dashboard and library for provisioning VirtualBox web-server VMs registered in a BIND zone."""

__version__ = "0.1.0"