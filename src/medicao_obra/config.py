# src/medicao_obra/config.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

PoliticaPreco = Literal["primeiro", "ultimo", "media_ponderada"]
POLITICAS_PRECO: tuple[str, ...] = ("primeiro", "ultimo", "media_ponderada")


@dataclass(frozen=True)
class Limiares:
    """
    Parâmetros das verificações. Todos os percentuais estão em pontos
    percentuais (0.5 = 0,5%), e não em fração.
    """
    # |calculado - informado| / informado * 100 acima disto = erro de cálculo
    tolerancia_calculo_pct: float = 0.01
    # |variação| <= isto = "estavel" na comparação entre períodos
    limiar_estavel_pct: float = 0.5
    # outlier: quantidade > média + sigma * desvio padrão (populacional)
    sigma_outlier: float = 3.0
    # severidade do erro de cálculo
    severidade_alta_pct: float = 10.0
    severidade_media_pct: float = 5.0
    # risco por disciplina (fração de linhas com erro)
    risco_alto: float = 0.3
    risco_medio: float = 0.1


LIMIARES_PADRAO = Limiares()


__all__ = ["Limiares", "LIMIARES_PADRAO", "PoliticaPreco", "POLITICAS_PRECO"]
