# src/medicao_obra/validators/calculo.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from ..config import Limiares, LIMIARES_PADRAO
from ..models import LinhaValidada, MedicaoEntry, Severidade

logger = logging.getLogger(__name__)


def severidade_erro(diferenca_pct: float, limiares: Limiares = LIMIARES_PADRAO) -> Severidade:
    """>10% -> high, >5% -> medium, senão low (limites configuráveis)."""
    if diferenca_pct > limiares.severidade_alta_pct:
        return "high"
    if diferenca_pct > limiares.severidade_media_pct:
        return "medium"
    return "low"


def diferenca_calculo(quantidade: float, valor_unit: float, valor_total: float) -> tuple[float, float, float]:
    """Retorna (valor_calculado, diferenca_abs, diferenca_pct). Total <= 0 -> pct = 0."""
    calculado = quantidade * valor_unit
    diferenca = abs(calculado - valor_total)
    pct = (diferenca / valor_total) * 100 if valor_total > 0 else 0.0
    return calculado, diferenca, pct


def possui_erro_calculo(
    quantidade: float,
    valor_unit: float,
    valor_total: float,
    limiares: Limiares = LIMIARES_PADRAO,
) -> bool:
    """
    Erro de cálculo: total informado diverge de quantidade × valor unitário
    além da tolerância. Linhas com total ou valor unitário zerados são
    tratadas como incompletas (nunca como erro).
    """
    if valor_total <= 0 or valor_unit <= 0:
        return False
    _, _, pct = diferenca_calculo(quantidade, valor_unit, valor_total)
    return pct > limiares.tolerancia_calculo_pct


def validar_linha(entry: MedicaoEntry, limiares: Limiares = LIMIARES_PADRAO) -> LinhaValidada:
    qtd = entry.get("quantidade") or 0.0
    pu = entry.get("valor_unit") or 0.0
    total = entry.get("valor_total") or 0.0

    calculado, diferenca, pct = diferenca_calculo(qtd, pu, total)
    erro = possui_erro_calculo(qtd, pu, total, limiares)
    sev: Optional[Severidade] = severidade_erro(pct, limiares) if erro else None

    out = dict(entry)
    out.update(
        valor_calculado=calculado,
        diferenca=diferenca,
        diferenca_pct=pct,
        erro_calculo=erro,
        severidade=sev,
    )
    return out  # type: ignore[return-value]


def validar_calculos(
    entries: Iterable[MedicaoEntry],
    limiares: Limiares = LIMIARES_PADRAO,
) -> List[LinhaValidada]:
    """Aplica `validar_linha` em lote, preservando a ordem de entrada."""
    out = [validar_linha(e, limiares) for e in entries]
    logger.debug("Validação de cálculo: %d linha(s), %d com erro.",
                 len(out), sum(1 for r in out if r["erro_calculo"]))
    return out
