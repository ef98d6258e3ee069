from .dia import DiaCatalog, parse_dia_product
from .mercadona import MercadonaCatalog, parse_mercadona_product

__all__ = [
    "DiaCatalog",
    "MercadonaCatalog",
    "parse_dia_product",
    "parse_mercadona_product",
]
