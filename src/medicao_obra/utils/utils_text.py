from __future__ import annotations

import unicodedata
import pandas as pd


def strip_accents(s: str) -> str:
    return unicodedata.normalize("NFKD", s).encode("ascii", "ignore").decode()


def is_blank(x: object) -> bool:
    """None, NaN ou string só com espaços."""
    if x is None:
        return True
    if isinstance(x, float) and pd.isna(x):
        return True
    return isinstance(x, str) and x.strip() == ""


def norm_header(s: object) -> str:
    """
    Normaliza rótulos de cabeçalho/palavras-chave:
    - sem acento, lower, strip
    - NaN/None -> ""
    """
    if not isinstance(s, str):
        s = "" if is_blank(s) else str(s)
    return strip_accents(s).lower().strip()


def norm_code(s: str | float | int | None) -> str:
    """
    Normaliza código (chave de comparação):
    - string + strip; NÃO remove zeros à esquerda (importante!)
    - inteiros vindos do Excel como float (ex.: 12.0) voltam a "12"
    - se vier NaN/None, retorna string vazia
    """
    if is_blank(s):
        return ""
    if isinstance(s, float) and s.is_integer():
        return str(int(s))
    return str(s).strip()


def truncar(s: str, limite: int = 50) -> str:
    """Corta descrições longas para mensagens ("abc..." quando passa do limite)."""
    s = s or ""
    return s if len(s) <= limite else f"{s[:limite]}..."
