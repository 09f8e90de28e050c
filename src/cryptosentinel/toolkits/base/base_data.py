from __future__ import annotations

"""Base Data Toolkit Helper Class
=================================

A helper class providing common data management functionality for data
toolkits. This is NOT a toolkit itself, but a collection of utilities that
data toolkits inherit alongside ``agno.tools.Toolkit``.

Key Features:
- Toolkit identification injected into every response envelope
- Optional JSON snapshots of fetched data for debugging
- Standardized data directory management
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

__all__ = ["BaseDataToolkit"]


class BaseDataToolkit:
    """Helper class for data toolkit operations.

    Example:
        ```python
        class TokenHoldersToolkit(Toolkit, BaseDataToolkit):
            def __init__(self, data_dir="./data/holders", **kwargs):
                super().__init__(**toolkit_kwargs)
                self._init_data_helpers(data_dir, toolkit_name="token_holders",
                                        source_tag="token_holders")

            async def fetch_all_token_holders(self, token: str, save_to_file: bool = False):
                result = await self._collect(token)
                if save_to_file:
                    self._store_json(result, f"{token}_holders")
                return self.response_builder.success_response(data=result)
        ```
    """

    def _init_data_helpers(
        self,
        data_dir: str | Path,
        toolkit_name: str = "",
        source_tag: Optional[str] = None,
    ) -> None:
        """Initialize data management helpers.

        The directory is created lazily, on the first snapshot.

        Args:
            data_dir: Directory for JSON snapshots
            toolkit_name: Name of the toolkit (used in logs)
            source_tag: Tag stamped on every envelope (defaults to toolkit_name)
        """
        self.data_dir = Path(data_dir)
        self._toolkit_name = toolkit_name

        from ..utils.response_builder import ResponseBuilder
        self.response_builder = ResponseBuilder(
            self._get_toolkit_info(),
            source_tag=source_tag or toolkit_name or self.__class__.__name__,
        )

        logger.debug(f"Data helpers initialized - Toolkit: {toolkit_name or 'unknown'}, Dir: {self.data_dir}")

    def _store_json(self, data: Any, filename: str) -> str:
        """Write ``data`` to ``<data_dir>/<filename>.json`` (indent 2).

        Returns:
            str: Path of the written file
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)
        file_path = self.data_dir / f"{filename}.json"

        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)

        logger.info(f"Saved {self._toolkit_name or 'toolkit'} snapshot to {file_path}")
        return str(file_path)

    def _get_toolkit_info(self) -> Dict[str, Any]:
        """Get toolkit identification information.

        Returns:
            dict: Toolkit identification info including name, category, type, and icon
        """
        return {
            'toolkit_name': self.__class__.__name__,
            'toolkit_category': getattr(self, '_toolkit_category', 'custom'),
            'toolkit_type': getattr(self, '_toolkit_type', 'custom'),
            'toolkit_icon': getattr(self, '_toolkit_icon', '🛠️')
        }
