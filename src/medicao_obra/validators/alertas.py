# src/medicao_obra/validators/alertas.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Literal, Optional, TypedDict

from ..config import Limiares, LIMIARES_PADRAO
from ..models import Alerta, MedicaoEntry
from ..utils.utils_text import truncar
from .calculo import validar_linha, possui_erro_calculo

Risco = Literal["low", "medium", "high"]
Tendencia = Literal["stable", "improving", "worsening"]

_ORDEM_SEVERIDADE = {"high": 0, "medium": 1, "low": 2}


class DisciplinaRisco(TypedDict):
    disciplina: str
    risco: Risco
    valor_total: float


class Estatisticas(TypedDict):
    total_medido: float
    valor_total: float
    qtd_itens: int
    qtd_outliers: int
    qtd_erros: int
    itens_reincidentes: int  # mesma descrição repetida com ao menos um erro
    # média por linha (histórico + lote) × linhas do lote
    valor_medio_historico: float
    valor_vs_media: float  # %
    disciplinas_risco: List[DisciplinaRisco]  # 5 de maior valor


class PeriodoDisciplina(TypedDict):
    periodo: int
    data: str
    valor: float
    qtd: int


class EstatisticaDisciplina(TypedDict):
    disciplina: str
    valor_total: float
    valor_medio: float
    periodos: List[PeriodoDisciplina]
    qtd_erros: int
    taxa_erro: float
    risco: Risco


class MedicaoHistorico(TypedDict):
    periodo: int
    data: str
    quantidade: float
    valor_unit: float
    valor_total: float
    erro_calculo: bool


class HistoricoItem(TypedDict):
    item_id: str
    descricao: str
    disciplina: str
    medicoes: List[MedicaoHistorico]
    quantidade_media: float
    valor_total_medio: float
    qtd_divergencias: int
    frequencia_divergencia: float  # %
    tendencia: Tendencia
    ultimo_desvio: float  # % em relação à média


def _tem_erro(e: MedicaoEntry, limiares: Limiares) -> bool:
    return possui_erro_calculo(
        e.get("quantidade") or 0.0,
        e.get("valor_unit") or 0.0,
        e.get("valor_total") or 0.0,
        limiares,
    )


def _risco(taxa: float, limiares: Limiares) -> Risco:
    if taxa > limiares.risco_alto:
        return "high"
    if taxa > limiares.risco_medio:
        return "medium"
    return "low"


def gerar_alertas(entries: Iterable[MedicaoEntry], limiares: Limiares = LIMIARES_PADRAO) -> List[Alerta]:
    """
    Gera alertas de erro de cálculo e de outlier, ordenados por severidade
    (high -> medium -> low; ordem de entrada preservada dentro de cada nível).
    """
    alertas: List[Alerta] = []

    for e in entries:
        v = validar_linha(e, limiares)
        desc = truncar(e.get("descricao", ""))

        if v["erro_calculo"]:
            alertas.append(Alerta(
                id=f"error-{e['id']}",
                tipo="error",
                severidade=v["severidade"] or "low",
                titulo="Erro de cálculo detectado",
                descricao=(f"{desc} apresenta diferença de {v['diferenca_pct']:.1f}% "
                           f"entre valor informado e calculado."),
                item_id=e["id"],
                valor=e.get("valor_total") or 0.0,
                valor_esperado=v["valor_calculado"],
            ))

        if e.get("status") == "outlier":
            alertas.append(Alerta(
                id=f"outlier-{e['id']}",
                tipo="outlier",
                severidade="medium",
                titulo="Valor atípico identificado",
                descricao=f"{desc} está fora do padrão do lote.",
                item_id=e["id"],
                valor=e.get("valor_total") or 0.0,
            ))

    return sorted(alertas, key=lambda a: _ORDEM_SEVERIDADE[a["severidade"]])


def calcular_estatisticas(
    entries: Iterable[MedicaoEntry],
    limiares: Limiares = LIMIARES_PADRAO,
    *,
    historico: Optional[Iterable[MedicaoEntry]] = None,
) -> Estatisticas:
    """
    Indicadores do lote. Com `historico` (medições anteriores), o valor do
    lote é comparado à média por linha de histórico + lote.
    """
    lote = list(entries)
    anteriores = list(historico or [])

    por_desc: Dict[str, Dict[str, int]] = {}
    qtd_erros = 0
    for e in lote:
        erro = _tem_erro(e, limiares)
        qtd_erros += erro
        acc = por_desc.setdefault(e.get("descricao", ""), {"count": 0, "erros": 0})
        acc["count"] += 1
        acc["erros"] += erro

    valor_total = sum(e.get("valor_total") or 0.0 for e in lote)
    todos = anteriores + lote
    if todos:
        valor_medio = sum(e.get("valor_total") or 0.0 for e in todos) / len(todos) * len(lote)
    else:
        valor_medio = valor_total
    valor_vs_media = (valor_total - valor_medio) / valor_medio * 100 if valor_medio > 0 else 0.0

    return Estatisticas(
        total_medido=sum(e.get("quantidade") or 0.0 for e in lote),
        valor_total=valor_total,
        qtd_itens=len(lote),
        qtd_outliers=sum(1 for e in lote if e.get("status") == "outlier"),
        qtd_erros=qtd_erros,
        itens_reincidentes=sum(1 for a in por_desc.values() if a["count"] > 1 and a["erros"] > 0),
        valor_medio_historico=valor_medio,
        valor_vs_media=valor_vs_media,
        disciplinas_risco=[
            DisciplinaRisco(disciplina=d["disciplina"], risco=d["risco"], valor_total=d["valor_total"])
            for d in estatisticas_por_disciplina(lote, limiares)[:5]
        ],
    )


def estatisticas_por_disciplina(
    entries: Iterable[MedicaoEntry],
    limiares: Limiares = LIMIARES_PADRAO,
) -> List[EstatisticaDisciplina]:
    """Agrega por disciplina: valor, períodos (por data), taxa de erro e risco."""
    grupos: Dict[str, List[MedicaoEntry]] = {}
    for e in entries:
        grupos.setdefault(e.get("disciplina") or "Geral", []).append(e)

    out: List[EstatisticaDisciplina] = []
    for disciplina, itens in grupos.items():
        valor_total = sum(i.get("valor_total") or 0.0 for i in itens)

        por_data: Dict[str, Dict[str, Any]] = {}
        for i in itens:
            acc = por_data.setdefault(i.get("data", ""), {"valor": 0.0, "qtd": 0})
            acc["valor"] += i.get("valor_total") or 0.0
            acc["qtd"] += 1
        periodos = [
            PeriodoDisciplina(periodo=idx, data=d, valor=acc["valor"], qtd=acc["qtd"])
            for idx, (d, acc) in enumerate(sorted(por_data.items()), start=1)
        ]

        qtd_erros = sum(1 for i in itens if _tem_erro(i, limiares))
        taxa = qtd_erros / len(itens)
        out.append(EstatisticaDisciplina(
            disciplina=disciplina,
            valor_total=valor_total,
            valor_medio=valor_total / len(itens),
            periodos=periodos,
            qtd_erros=qtd_erros,
            taxa_erro=taxa,
            risco=_risco(taxa, limiares),
        ))

    return sorted(out, key=lambda d: d["valor_total"], reverse=True)


def _tendencia(erros: List[bool]) -> Tendencia:
    # erros nas 3 últimas medições contra (taxa de erro das anteriores) × n / 3
    n = len(erros)
    if n < 3:
        return "stable"
    recentes = sum(erros[-3:])
    taxa_antiga = sum(erros[:-3]) / max(1, n - 3)
    esperado = taxa_antiga * n / 3
    if recentes > esperado:
        return "worsening"
    if recentes < esperado:
        return "improving"
    return "stable"


def historico_item(
    entries: Iterable[MedicaoEntry],
    descricao: str,
    limiares: Limiares = LIMIARES_PADRAO,
) -> Optional[HistoricoItem]:
    """Histórico de um item (por descrição exata) ao longo das medições carregadas."""
    itens = [e for e in entries if e.get("descricao") == descricao]
    if not itens:
        return None

    medicoes = [
        MedicaoHistorico(
            periodo=idx,
            data=e.get("data", ""),
            quantidade=e.get("quantidade") or 0.0,
            valor_unit=e.get("valor_unit") or 0.0,
            valor_total=e.get("valor_total") or 0.0,
            erro_calculo=_tem_erro(e, limiares),
        )
        for idx, e in enumerate(itens, start=1)
    ]

    n = len(medicoes)
    qtd_media = sum(m["quantidade"] for m in medicoes) / n
    total_medio = sum(m["valor_total"] for m in medicoes) / n
    divergencias = sum(1 for m in medicoes if m["erro_calculo"])
    ultimo = medicoes[-1]["valor_total"]
    ultimo_desvio = (ultimo - total_medio) / total_medio * 100 if total_medio > 0 else 0.0

    return HistoricoItem(
        item_id=itens[0]["id"],
        descricao=descricao,
        disciplina=itens[0].get("disciplina", ""),
        medicoes=medicoes,
        quantidade_media=qtd_media,
        valor_total_medio=total_medio,
        qtd_divergencias=divergencias,
        frequencia_divergencia=divergencias / n * 100,
        tendencia=_tendencia([m["erro_calculo"] for m in medicoes]),
        ultimo_desvio=ultimo_desvio,
    )
