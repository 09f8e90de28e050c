from .base_api import BaseAPIToolkit
from .base_data import BaseDataToolkit
from .base_rpc import BaseSolanaRPCToolkit

__all__ = ["BaseAPIToolkit", "BaseDataToolkit", "BaseSolanaRPCToolkit"]
