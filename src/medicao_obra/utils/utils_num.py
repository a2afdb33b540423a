from __future__ import annotations

import numbers
import re
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

import pandas as pd

# dia 0 do calendário serial do Excel (considerando o bug de 1900)
_EXCEL_EPOCH = datetime(1899, 12, 30)


def smart_to_float(x) -> Optional[float]:
    """Converte string com pt-BR/EN para float. Mantém float intacto; '-' ou vazio -> None."""
    if x is None or (isinstance(x, float) and pd.isna(x)):
        return None
    if isinstance(x, bool):
        return None
    if isinstance(x, numbers.Real):
        return float(x)
    s = str(x).strip()
    if s in ("", "-"):
        return None
    # remove lixo (R$, espaços, %), mas preserva '.' e ',' para decidir semântica
    s = re.sub(r"[^0-9\.,-]", "", s)
    has_dot, has_comma = "." in s, "," in s
    if has_dot and has_comma:
        s = s.replace(".", "").replace(",", ".")  # . = milhar, , = decimal
    elif has_comma and not has_dot:
        s = s.replace(",", ".")                   # só vírgula -> decimal
    # só ponto -> já está em EN
    try:
        return float(s)
    except ValueError:
        return None


def to_float(x, default: float = 0.0) -> float:
    v = smart_to_float(x)
    return default if v is None else v


def media_desvio(valores: Iterable[float]) -> tuple[float, float]:
    """Média e desvio padrão POPULACIONAL (ddof=0). Lista vazia -> (0.0, 0.0)."""
    s = pd.Series(list(valores), dtype=float)
    if s.empty:
        return 0.0, 0.0
    return float(s.mean()), float(s.std(ddof=0))


def pct_change(base: Optional[float], novo: Optional[float]) -> Optional[float]:
    """Variação percentual de `base` para `novo`; None se faltar valor ou base <= 0."""
    if base is None or novo is None or base <= 0:
        return None
    return (novo - base) * 100 / base


def format_date(value, hoje: Optional[date] = None) -> str:
    """
    Normaliza datas vindas da planilha para ISO (YYYY-MM-DD):
    - vazio -> data de hoje
    - datetime/date/Timestamp -> ISO
    - número -> serial do Excel
    - qualquer outra coisa -> string como veio
    """
    if value is None or value is pd.NaT or (isinstance(value, float) and pd.isna(value)):
        return (hoje or date.today()).isoformat()
    if isinstance(value, str) and value.strip() == "":
        return (hoje or date.today()).isoformat()
    if isinstance(value, (datetime, pd.Timestamp)):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return (_EXCEL_EPOCH + timedelta(days=float(value))).date().isoformat()
    return str(value).strip()
