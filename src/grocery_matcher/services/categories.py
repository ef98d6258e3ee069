"""Keyword table used to infer an ingredient's supermarket category."""

from typing import Optional, Tuple

from .normalizer import strip_diacritics

# Order matters: the first category with a keyword contained in the name wins.
CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("meat", (
        "chicken", "beef", "pork", "lamb", "turkey", "duck", "rabbit",
        "pollo", "ternera", "cerdo", "cordero", "pavo", "carne",
    )),
    ("seafood", (
        "fish", "salmon", "tuna", "cod", "shrimp", "prawn", "squid",
        "pescado", "atun", "bacalao", "gambas", "calamar", "marisco",
    )),
    ("dairy", (
        "milk", "cheese", "yogurt", "butter", "cream", "egg",
        "leche", "queso", "yogur", "mantequilla", "nata", "huevo",
    )),
    ("produce", (
        "tomato", "onion", "garlic", "carrot", "lettuce", "spinach", "pepper", "potato",
        "tomate", "cebolla", "ajo", "zanahoria", "lechuga", "espinaca", "pimiento", "patata",
        "apple", "orange", "lemon", "banana", "manzana", "naranja", "limon", "platano",
    )),
    ("bakery", ("bread", "baguette", "roll", "pan", "bolleria")),
    ("frozen", ("frozen", "congelado")),
    ("canned", ("canned", "conserva", "enlatado")),
    ("dry_goods", (
        "rice", "pasta", "flour", "oats", "quinoa", "lentils", "beans",
        "arroz", "harina", "avena", "lentejas", "judias",
    )),
    ("condiments", (
        "oil", "vinegar", "sauce", "ketchup", "mayonnaise", "mustard",
        "aceite", "vinagre", "salsa", "mayonesa", "mostaza",
    )),
    ("spices", (
        "salt", "pepper", "cumin", "paprika", "oregano", "basil", "thyme",
        "sal", "pimienta", "comino", "pimenton", "albahaca", "tomillo",
    )),
    ("beverages", (
        "water", "juice", "coffee", "tea", "wine", "beer",
        "agua", "zumo", "cafe", "te", "vino", "cerveza",
    )),
)


def infer_category(ingredient_name: str) -> Optional[str]:
    """
    Infer a Category from a raw ingredient name.

    Case- and accent-insensitive substring match against CATEGORY_KEYWORDS;
    the first hit in table order wins. Returns None when nothing matches.
    """
    lower = strip_diacritics((ingredient_name or "").lower())
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return category
    return None
