# src/medicao_obra/validators/planilha.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from ..adapters.colunas import indice_coluna, mapear_colunas
from ..config import Limiares, LIMIARES_PADRAO
from ..models import AnalisePlanilha, ErroCelula, ResumoAnalise
from ..utils.utils_num import smart_to_float
from ..utils.utils_text import is_blank, norm_header
from .calculo import diferenca_calculo, possui_erro_calculo
from .outliers import is_outlier, limiar_outlier

logger = logging.getLogger(__name__)

# só as primeiras colunas são consideradas obrigatórias
_COLS_OBRIGATORIAS = 5
_PADROES_NUMERICOS = ("valor", "total", "preco", "custo", "qtd", "quantidade")


def _nome_coluna(cabecalhos: Sequence[Any], col: int) -> str:
    h = cabecalhos[col] if col < len(cabecalhos) else None
    return f"Coluna {col + 1}" if is_blank(h) else str(h)


def _celula(linha: Sequence[Any], col: int) -> Any:
    return linha[col] if col < len(linha) else None


def _faltantes(cabecalhos: Sequence[Any], linhas: Sequence[Sequence[Any]]) -> List[ErroCelula]:
    erros: List[ErroCelula] = []
    n_cols = min(_COLS_OBRIGATORIAS, len(cabecalhos))
    for i, linha in enumerate(linhas):
        for col in range(n_cols):
            if is_blank(_celula(linha, col)):
                erros.append(ErroCelula(
                    linha=i,
                    coluna=col,
                    tipo="missing",
                    severidade="info",
                    mensagem=f'Campo "{_nome_coluna(cabecalhos, col)}" está vazio',
                ))
    return erros


def _duplicatas(linhas: Sequence[Sequence[Any]]) -> List[ErroCelula]:
    vistos: Dict[str, List[int]] = {}
    for i, linha in enumerate(linhas):
        v = _celula(linha, 0)
        if is_blank(v):
            continue
        vistos.setdefault(str(v).strip().lower(), []).append(i)

    erros: List[ErroCelula] = []
    for chave, idxs in vistos.items():
        if len(idxs) < 2:
            continue
        lista = ", ".join(str(i + 1) for i in idxs)
        for i in idxs:
            erros.append(ErroCelula(
                linha=i,
                coluna=0,
                tipo="duplicate",
                severidade="warning",
                mensagem=f'Valor "{chave}" aparece {len(idxs)} vezes (linhas: {lista})',
            ))
    return erros


def _calculos(
    cabecalhos: Sequence[Any],
    linhas: Sequence[Sequence[Any]],
    limiares: Limiares,
) -> List[ErroCelula]:
    cols = list(cabecalhos)
    mapa = mapear_colunas(cols)
    c_qtd = indice_coluna(cols, mapa["quantidade"])
    c_pu = indice_coluna(cols, mapa["valor_unit"])
    c_tot = indice_coluna(cols, mapa["valor_total"])
    if c_qtd is None or c_pu is None or c_tot is None:
        logger.debug("Colunas de quantidade/valor unitário/total não detectadas; sem checagem de cálculo.")
        return []

    erros: List[ErroCelula] = []
    for i, linha in enumerate(linhas):
        qtd = smart_to_float(_celula(linha, c_qtd))
        pu = smart_to_float(_celula(linha, c_pu))
        tot = smart_to_float(_celula(linha, c_tot))
        if qtd is None or pu is None or tot is None:
            continue
        if not possui_erro_calculo(qtd, pu, tot, limiares):
            continue
        calc, _, pct = diferenca_calculo(qtd, pu, tot)
        erros.append(ErroCelula(
            linha=i,
            coluna=c_tot,
            tipo="calculation",
            severidade="error",
            mensagem=(f"Valor total {tot:.2f} deveria ser {calc:.2f} "
                      f"({qtd:g} × {pu:.2f}); diferença de {pct:.2f}%"),
            valor=tot,
            valor_esperado=calc,
        ))
    return erros


def _inconsistentes(
    cabecalhos: Sequence[Any],
    linhas: Sequence[Sequence[Any]],
    limiares: Limiares,
) -> List[ErroCelula]:
    erros: List[ErroCelula] = []
    for col, h in enumerate(cabecalhos):
        hn = norm_header(h)
        if not hn or not any(p in hn for p in _PADROES_NUMERICOS):
            continue

        valores = [(i, smart_to_float(_celula(linha, col))) for i, linha in enumerate(linhas)]
        limiar = limiar_outlier((v for _, v in valores if v is not None), limiares.sigma_outlier)
        for i, v in valores:
            if v is not None and is_outlier(v, limiar):
                erros.append(ErroCelula(
                    linha=i,
                    coluna=col,
                    tipo="inconsistent",
                    severidade="warning",
                    mensagem=(f'Valor {v:g} em "{_nome_coluna(cabecalhos, col)}" está acima de '
                              f"média + {limiares.sigma_outlier:g} desvios da coluna ({limiar:.2f})"),
                    valor=v,
                ))
    return erros


def analisar_planilha(
    cabecalhos: Sequence[Any],
    linhas: Sequence[Sequence[Any]],
    limiares: Limiares = LIMIARES_PADRAO,
) -> AnalisePlanilha:
    """
    Análise local célula a célula de uma planilha já lida (cabeçalho + linhas):
    dados faltantes, duplicatas na 1ª coluna, erros de cálculo e valores
    fora do padrão. Índices de linha/coluna são 0-based sobre `linhas`.
    """
    linhas = [list(l) if l is not None else [] for l in linhas]

    erros: List[ErroCelula] = []
    erros += _faltantes(cabecalhos, linhas)
    erros += _duplicatas(linhas)
    erros += _calculos(cabecalhos, linhas, limiares)
    erros += _inconsistentes(cabecalhos, linhas, limiares)

    resumo = ResumoAnalise(
        total_linhas=len(linhas),
        total_erros=len(erros),
        erros_calculo=sum(1 for e in erros if e["tipo"] == "calculation"),
        valores_inconsistentes=sum(1 for e in erros if e["tipo"] == "inconsistent"),
        duplicatas=sum(1 for e in erros if e["tipo"] == "duplicate"),
        dados_faltantes=sum(1 for e in erros if e["tipo"] == "missing"),
    )
    logger.info("Análise concluída: %d linha(s), %d apontamento(s).", resumo["total_linhas"], resumo["total_erros"])
    return AnalisePlanilha(erros=erros, resumo=resumo)
