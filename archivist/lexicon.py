"""Query term analysis for lexical matching (Spanish and English)."""

import re
import unicodedata
from typing import Iterable, List, Set

_NON_ALPHANUMERIC = re.compile(r"[\W_]+")


def fold(text: str) -> str:
    """Lowercase and strip diacritics (``"Pagué"`` -> ``"pague"``)."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _words(text: str) -> List[str]:
    return [word for word in _NON_ALPHANUMERIC.split(fold(text)) if word]


STOPWORDS: Set[str] = {fold(word) for word in (
    # Spanish
    "que", "qué", "de", "del", "la", "el", "en", "es", "lo", "los", "las",
    "un", "una", "uno", "por", "con", "para", "al", "se", "su", "sus", "mi",
    "mis", "tu", "tus", "nos", "les", "como", "pero", "mas", "más", "ya",
    "este", "esta", "ese", "esa", "hay", "fue", "son", "ser", "sin", "sobre",
    "entre", "cuando", "muy", "puede", "donde", "tiene", "sido", "desde",
    "está", "están", "era", "han", "todo", "otra", "otro", "cual", "cuál",
    "aquí", "también", "cada", "porque",
    # English
    "the", "is", "at", "which", "on", "and", "or", "in", "to", "of", "for",
    "with", "was", "are", "has", "have", "had", "not", "but", "from", "this",
    "that", "these", "those", "what", "when", "where", "how", "who", "why",
    "my", "your", "his", "her", "its", "our", "do", "does", "did", "will",
    "would", "could", "should", "can", "about", "been", "being", "were",
    "they", "them", "their", "all", "any", "some", "much", "many", "more",
    "most", "very",
)}

# Words that shape a question without naming what it is about
INTENT_VERBS: Set[str] = {fold(word) for word in (
    # Spanish
    "hice", "hago", "hacer", "trabaje", "trabajo", "trabajar", "trabajando",
    "tuve", "tengo", "tener", "fui", "fue", "ser", "estar", "estuve", "dije",
    "decir", "puse", "poner", "hizo", "haciendo", "hace", "cual", "como",
    "donde", "cuando", "cuanto", "cuantos", "cuantas", "cuanta", "puedo",
    "puede", "podria", "quiero", "necesito", "labor", "experiencia",
    "puesto", "cargo", "funcion", "tiempo", "dia", "dias", "mes", "meses",
    "ano", "anos", "hoy", "ayer", "semana", "semanas", "pasado", "pasada",
    "anterior", "ultimo", "ultima", "cosa", "cosas", "parte", "partes",
    "tipo", "tipos", "forma", "manera", "vez", "veces", "algo", "nada",
    "mucho", "poco", "bien", "mal", "nombre", "numero", "fecha", "datos",
    "informacion", "documento", "precio", "pago", "pague", "dinero", "valor",
    "total", "cuenta", "gasto", "gastos", "gaste", "factura", "recibo",
    "coste", "costo", "luz", "agua", "gas", "electricidad", "telefono",
    "internet", "alquiler", "clima", "lluvia", "sol", "temperatura",
    "grados", "calor", "frio",
    # English
    "what", "how", "much", "many", "does", "did", "can", "could", "would",
    "should", "need", "want", "know", "think", "tell", "show", "give",
    "find", "get", "make", "like", "look", "help", "work", "worked",
    "working", "today", "yesterday", "tomorrow", "last", "next", "previous",
    "recent", "week", "weeks", "month", "months", "year", "years", "day",
    "days", "time", "ago", "thing", "things", "something", "nothing", "good",
    "bad", "way", "kind", "part", "name", "number", "date", "information",
    "info", "document", "file", "price", "pay", "paid", "payment", "money",
    "cost", "total", "bill", "receipt", "spend", "spent", "expense",
    "expenses", "invoice", "electricity", "water", "rent", "phone",
    "weather", "rain", "sunny", "temperature", "degrees", "hot", "cold",
    "forecast", "necessary", "important", "possible", "really", "very",
    "also", "still", "just", "some", "any", "every", "each", "best", "most",
    "more", "less", "lose", "weight", "diet", "healthy", "exercise",
)}


def meaningful_terms(query: str) -> List[str]:
    """Folded query words longer than one character that are not stopwords.

    Order of first appearance is kept and duplicates are dropped.
    """
    terms: List[str] = []
    for word in _words(query):
        if len(word) > 1 and word not in STOPWORDS and word not in terms:
            terms.append(word)
    return terms


def entity_terms(terms: Iterable[str]) -> List[str]:
    """Terms that name something specific: longer than two characters and not an intent verb."""
    return [term for term in terms if len(term) > 2 and term not in INTENT_VERBS]


def token_set(*texts: str) -> Set[str]:
    """Folded words longer than one character found in ``texts``."""
    return {word for text in texts for word in _words(text) if len(word) > 1}


def build_fts_query(terms: Iterable[str], use_or: bool = False) -> str:
    """FTS5 MATCH expression of phrase-quoted terms joined by AND (or OR)."""
    quoted = ['"{}"'.format(term.replace('"', '""')) for term in terms]
    return (" OR " if use_or else " AND ").join(quoted)
