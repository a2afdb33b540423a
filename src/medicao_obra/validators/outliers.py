# src/medicao_obra/validators/outliers.py
from __future__ import annotations

import logging
from typing import Iterable, List

from ..config import Limiares, LIMIARES_PADRAO
from ..models import MedicaoEntry
from ..utils.utils_num import media_desvio

logger = logging.getLogger(__name__)


def limiar_outlier(quantidades: Iterable[float], sigma: float = 3.0) -> float:
    """
    média + sigma * desvio (populacional) das quantidades POSITIVAS do lote.
    Lote sem quantidades positivas -> 0.0 (nenhum outlier).
    """
    positivos = [float(q) for q in quantidades if q and q > 0]
    if not positivos:
        return 0.0
    media, desvio = media_desvio(positivos)
    return media + sigma * desvio


def is_outlier(quantidade: float, limiar: float) -> bool:
    return limiar > 0 and quantidade > limiar


def marcar_outliers(
    entries: Iterable[MedicaoEntry],
    limiares: Limiares = LIMIARES_PADRAO,
) -> List[MedicaoEntry]:
    """
    Duas passadas: (1) limiar do lote; (2) marca `status="outlier"`.
    Retorna cópias. Linha marcada como outlier que não passa mais do limiar
    volta para "normal"; "pending" não é alterado.
    """
    lote = list(entries)
    limiar = limiar_outlier((e.get("quantidade") or 0.0 for e in lote), limiares.sigma_outlier)

    out: List[MedicaoEntry] = []
    n_out = 0
    for e in lote:
        novo = dict(e)
        if is_outlier(e.get("quantidade") or 0.0, limiar):
            novo["status"] = "outlier"
            n_out += 1
        elif e.get("status") == "outlier":
            novo["status"] = "normal"
        out.append(novo)  # type: ignore[arg-type]

    logger.debug("Outliers: limiar=%.4f, %d de %d linha(s).", limiar, n_out, len(lote))
    return out
