from sqlrecovery.backends.azure import AzureResourceClient
from sqlrecovery.backends.base import CloudResourceClient
from sqlrecovery.backends.clients import Clients, build_clients

__all__ = ["AzureResourceClient", "CloudResourceClient", "Clients", "build_clients"]
