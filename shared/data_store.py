"""
File-backed catalog store for the storefront network.

The Store serves prices and the Content server serves deliverables, both read
once at startup from plain text files with one ``<itemId> <value>`` record per
line. Nothing is written back; the catalog never changes at runtime.

Design decisions:
- Paths are resolved relative to the process working directory
- A missing file or a malformed line is a startup failure (CatalogFormatError)
- Blank lines are skipped; a repeated item id keeps the last line
- Content values may contain spaces (the id is split off the first space)
- Loading is lazy, but servers call load() at startup so errors surface early
"""

import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from shared.errors import CatalogFormatError
from shared.models import ContentItem, StockItem
from shared.protocol import SEPARATOR, parse_int

logger = logging.getLogger("data_store")

PathLike = Union[str, Path]

# Bundled sample data used by the demo and the tests
DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def _read_lines(path: Path) -> list[tuple[int, str]]:
    """Read a data file, returning (line number, text) for non-blank lines."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CatalogFormatError(f'Could not find "{path.name}" in directory: {path.parent}') from e

    lines = []
    for number, line in enumerate(text.splitlines(), start=1):
        if line.strip():
            lines.append((number, line))
    return lines


def _parse_record(path: Path, number: int, line: str) -> tuple[int, str]:
    """Split ``<itemId> <value>`` and check the id is an integer."""
    parts = line.split(SEPARATOR, 1)
    item_id = parse_int(parts[0])
    if item_id is None or len(parts) != 2 or not parts[1]:
        raise CatalogFormatError(f"{path}:{number}: malformed record {line!r}")
    return item_id, parts[1]


def load_stock_file(path: PathLike) -> dict[int, StockItem]:
    """
    Load a Store stock file of ``<itemId> <price>`` lines.

    Raises:
        CatalogFormatError: if the file is missing or any line is malformed
    """
    path = Path(path)
    stock: dict[int, StockItem] = {}
    for number, line in _read_lines(path):
        item_id, value = _parse_record(path, number, line)
        try:
            stock[item_id] = StockItem(item_id=item_id, price=Decimal(value))
        except (InvalidOperation, ValidationError) as e:
            raise CatalogFormatError(f"{path}:{number}: bad price {value!r}") from e
    logger.debug(f"Loaded {len(stock)} stock items from {path}")
    return stock


def load_content_file(path: PathLike) -> dict[int, ContentItem]:
    """
    Load a Content file of ``<itemId> <content>`` lines.

    Raises:
        CatalogFormatError: if the file is missing or any line is malformed
    """
    path = Path(path)
    content: dict[int, ContentItem] = {}
    for number, line in _read_lines(path):
        item_id, value = _parse_record(path, number, line)
        content[item_id] = ContentItem(item_id=item_id, content=value)
    logger.debug(f"Loaded {len(content)} content items from {path}")
    return content


class DataStore:
    """
    Read-only catalog for one process.

    The Store process gives it a stock file, the Content process a content
    file. Either may be omitted; querying a catalog that was not configured
    behaves like an empty catalog.

    Example:
        store = DataStore(stock_file="stock.txt")
        store.load()
        store.get_price(2)        # Decimal('12.50')
        store.get_stock()         # ascending by item id
    """

    def __init__(
        self,
        stock_file: Optional[PathLike] = None,
        content_file: Optional[PathLike] = None,
    ):
        """
        Args:
            stock_file: ``<itemId> <price>`` file, relative to the working directory
            content_file: ``<itemId> <content>`` file, relative to the working directory
        """
        self.stock_file = Path(stock_file).resolve() if stock_file else None
        self.content_file = Path(content_file).resolve() if content_file else None

        # In-memory caches - loaded lazily
        self._stock: Optional[dict[int, StockItem]] = None
        self._content: Optional[dict[int, ContentItem]] = None

    # =========================================================================
    # Data Loading (lazy)
    # =========================================================================

    def _ensure_stock_loaded(self):
        if self._stock is None:
            self._stock = load_stock_file(self.stock_file) if self.stock_file else {}

    def _ensure_content_loaded(self):
        if self._content is None:
            self._content = load_content_file(self.content_file) if self.content_file else {}

    def load(self) -> "DataStore":
        """Load every configured file now, so format errors fail startup."""
        self._ensure_stock_loaded()
        self._ensure_content_loaded()
        return self

    # =========================================================================
    # Stock Operations
    # =========================================================================

    def get_stock_item(self, item_id: int) -> Optional[StockItem]:
        self._ensure_stock_loaded()
        return self._stock.get(item_id)

    def get_price(self, item_id: int) -> Optional[Decimal]:
        """Price of an item, or None if the Store does not stock it."""
        item = self.get_stock_item(item_id)
        return item.price if item else None

    def get_stock(self) -> list[StockItem]:
        """All stock items in ascending item id order."""
        self._ensure_stock_loaded()
        return [self._stock[item_id] for item_id in sorted(self._stock)]

    # =========================================================================
    # Content Operations
    # =========================================================================

    def get_content(self, item_id: int) -> Optional[str]:
        """Deliverable for an item, or None if there is none."""
        self._ensure_content_loaded()
        item = self._content.get(item_id)
        return item.content if item else None

    def get_contents(self) -> list[ContentItem]:
        """All content items in ascending item id order."""
        self._ensure_content_loaded()
        return [self._content[item_id] for item_id in sorted(self._content)]

    def reload(self):
        """Drop cached catalogs so the next query reads the files again."""
        self._stock = None
        self._content = None
