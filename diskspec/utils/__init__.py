from diskspec.utils import logging, module_loader, sync_tools

__all__ = ("logging", "module_loader", "sync_tools")
