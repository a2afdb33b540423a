# src/medicao_obra/processor.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from .config import Limiares, LIMIARES_PADRAO, PoliticaPreco, POLITICAS_PRECO
from .models import (
    ItemComparacao,
    MedicaoEntry,
    ResultadoComparacao,
    ResumoComparacao,
    StatusComparacao,
    TipoComparacao,
    TPUEntry,
)
from .utils.utils_num import pct_change

logger = logging.getLogger(__name__)

T = TypeVar("T")

Campo = Callable[[T], Optional[float]]


@dataclass
class Agregado:
    """Um lado (base ou comparação) de uma chave, já consolidado."""
    descricao: str
    unidade: Optional[str]
    preco: Optional[float]
    quantidade: Optional[float]
    total: Optional[float]
    ocorrencias: int = 1


@dataclass(frozen=True)
class Acessores(Generic[T]):
    """
    Como ler cada tipo de entrada. O comparador não sabe se está lidando
    com TPU ou medição: só conhece estes acessores.
    """
    tipo: TipoComparacao
    chave: Callable[[T], str]
    descricao: Callable[[T], str]
    unidade: Callable[[T], Optional[str]]
    preco: Campo
    # None = campo não se aplica a este tipo
    quantidade: Optional[Campo] = None
    total: Optional[Campo] = None
    # valor somado no resumo (sobre as listas originais)
    valor_resumo: Campo = lambda _: 0.0
    # chaves repetidas: somar quantidade/total (medição) ou último vence (TPU)
    somar_repetidos: bool = False
    # variação que decide o status e a ordenação
    variacao: Callable[[ItemComparacao], Optional[float]] = lambda it: it["variacao_preco"]


# =====================================================================
# Acessores concretos
# =====================================================================

def chave_medicao(e: MedicaoEntry) -> str:
    """Código do item; sem código, a descrição."""
    return str(e.get("item") or "").strip() or e.get("descricao", "")


def _variacao_medicao(it: ItemComparacao) -> Optional[float]:
    # evolução da obra: quantidade; sem quantidade comparável, valor total
    if it["variacao_quantidade"] is not None:
        return it["variacao_quantidade"]
    return it["variacao_total"]


ACESSORES_TPU: Acessores[TPUEntry] = Acessores(
    tipo="tpu",
    chave=lambda e: str(e.get("codigo") or ""),
    descricao=lambda e: e.get("nome", ""),
    unidade=lambda e: e.get("unidade"),
    preco=lambda e: e.get("preco_unit"),
    valor_resumo=lambda e: e.get("preco_unit"),
    variacao=lambda it: it["variacao_preco"],
)

ACESSORES_MEDICAO: Acessores[MedicaoEntry] = Acessores(
    tipo="medicao",
    chave=chave_medicao,
    descricao=lambda e: e.get("descricao", ""),
    unidade=lambda e: e.get("unidade"),
    preco=lambda e: e.get("valor_unit"),
    quantidade=lambda e: e.get("quantidade"),
    total=lambda e: e.get("valor_total"),
    valor_resumo=lambda e: e.get("valor_total"),
    somar_repetidos=True,
    variacao=_variacao_medicao,
)


# =====================================================================
# Consolidação por chave
# =====================================================================

def _soma(a: Optional[float], b: Optional[float]) -> Optional[float]:
    if a is None:
        return b
    if b is None:
        return a
    return a + b


def _ler(campo: Optional[Campo], e) -> Optional[float]:
    return campo(e) if campo is not None else None


def agrupar(
    entries: Sequence[T],
    acc: Acessores[T],
    politica_preco: PoliticaPreco = "primeiro",
) -> Dict[str, Agregado]:
    """
    chave -> Agregado, na ordem da primeira ocorrência.

    Sem `somar_repetidos`, a última ocorrência vence. Com, quantidades e
    totais são somados e o preço unitário segue `politica_preco`:
      - "primeiro": preço da primeira ocorrência
      - "ultimo": preço da última ocorrência
      - "media_ponderada": total somado / quantidade somada (se quantidade > 0;
        senão mantém o da primeira ocorrência)
    """
    if politica_preco not in POLITICAS_PRECO:
        raise ValueError(f"politica_preco inválida: {politica_preco!r}. Use: {', '.join(POLITICAS_PRECO)}")

    out: Dict[str, Agregado] = {}
    dup = 0
    for e in entries:
        k = acc.chave(e)
        novo = Agregado(
            descricao=acc.descricao(e),
            unidade=acc.unidade(e),
            preco=acc.preco(e),
            quantidade=_ler(acc.quantidade, e),
            total=_ler(acc.total, e),
        )
        atual = out.get(k)
        if atual is None:
            out[k] = novo
            continue

        dup += 1
        if not acc.somar_repetidos:
            out[k] = novo
            continue

        atual.quantidade = _soma(atual.quantidade, novo.quantidade)
        atual.total = _soma(atual.total, novo.total)
        atual.ocorrencias += 1
        if politica_preco == "ultimo":
            atual.preco = novo.preco

    if politica_preco == "media_ponderada" and acc.somar_repetidos:
        for ag in out.values():
            if ag.ocorrencias > 1 and ag.quantidade and ag.quantidade > 0 and ag.total is not None:
                ag.preco = ag.total / ag.quantidade

    if dup:
        logger.debug("%d chave(s) repetida(s) consolidada(s) (%s).",
                     dup, "somando" if acc.somar_repetidos else "último vence")
    return out


# =====================================================================
# Classificação
# =====================================================================

def classificar(variacao: Optional[float], limiares: Limiares = LIMIARES_PADRAO) -> StatusComparacao:
    """Status de uma chave presente nos dois lados. Sem variação -> estável."""
    v = variacao or 0.0
    if abs(v) <= limiares.limiar_estavel_pct:
        return "estavel"
    return "aumentou" if v > 0 else "diminuiu"


def _dif(base: Optional[float], comp: Optional[float]) -> Optional[float]:
    # existe sempre que os dois lados têm o valor, mesmo com base zero
    if base is None or comp is None:
        return None
    return comp - base


def _item(codigo: str, b: Optional[Agregado], c: Optional[Agregado]) -> ItemComparacao:
    descricao = (c.descricao if c and c.descricao else "") or (b.descricao if b else "") or ""
    unidade = (c.unidade if c and c.unidade else None) or (b.unidade if b else None)

    v_preco = v_qtd = v_total = None
    if b is not None and c is not None:
        v_preco = pct_change(b.preco, c.preco)
        v_qtd = pct_change(b.quantidade, c.quantidade)
        v_total = pct_change(b.total, c.total)

    return ItemComparacao(
        codigo=codigo,
        descricao=descricao,
        unidade=unidade,
        valor_base=b.preco if b else None,
        quantidade_base=b.quantidade if b else None,
        total_base=b.total if b else None,
        valor_comparacao=c.preco if c else None,
        quantidade_comparacao=c.quantidade if c else None,
        total_comparacao=c.total if c else None,
        variacao_preco=v_preco,
        variacao_quantidade=v_qtd,
        variacao_total=v_total,
        diferenca_valor=_dif(b.preco, c.preco) if b and c else None,
        diferenca_quantidade=_dif(b.quantidade, c.quantidade) if b and c else None,
        status="estavel",
    )


def _soma_resumo(entries: Sequence[T], acc: Acessores[T]) -> float:
    return float(sum(acc.valor_resumo(e) or 0.0 for e in entries))


def comparar(
    base: Sequence[T],
    comparacao: Sequence[T],
    nome_base: str,
    nome_comparacao: str,
    acc: Acessores[T],
    *,
    limiares: Limiares = LIMIARES_PADRAO,
    politica_preco: PoliticaPreco = "primeiro",
) -> ResultadoComparacao:
    """
    Alinha `base` e `comparacao` por chave e classifica cada chave em
    novo / removido / aumentou / diminuiu / estavel.

    - Itens ordenados por |variação| decrescente (ordenação estável).
    - Resumo soma os valores das listas ORIGINAIS (antes da consolidação).
    - Entradas malformadas não geram exceção: campos ausentes viram None.
    """
    mapa_b = agrupar(base, acc, politica_preco)
    mapa_c = agrupar(comparacao, acc, politica_preco)

    # união das chaves: base na ordem de leitura, depois as novas da comparação
    chaves = list(mapa_b) + [k for k in mapa_c if k not in mapa_b]

    items: List[ItemComparacao] = []
    for k in chaves:
        b = mapa_b.get(k)
        c = mapa_c.get(k)
        it = _item(k, b, c)
        if b is None:
            it["status"] = "novo"
        elif c is None:
            it["status"] = "removido"
        else:
            it["status"] = classificar(acc.variacao(it), limiares)
        items.append(it)

    items.sort(key=lambda it: abs(acc.variacao(it) or 0.0), reverse=True)

    def _conta(status: str) -> int:
        return sum(1 for it in items if it["status"] == status)

    aumentos = [it for it in items if it["status"] == "aumentou"]
    reducoes = [it for it in items if it["status"] == "diminuiu"]

    total_b = _soma_resumo(base, acc)
    total_c = _soma_resumo(comparacao, acc)

    resumo = ResumoComparacao(
        total_itens_base=len(base),
        total_itens_comparacao=len(comparacao),
        itens_novos=_conta("novo"),
        itens_removidos=_conta("removido"),
        itens_aumentaram=_conta("aumentou"),
        itens_diminuiram=_conta("diminuiu"),
        itens_estaveis=_conta("estavel"),
        valor_total_base=total_b,
        valor_total_comparacao=total_c,
        variacao_total_geral=pct_change(total_b, total_c) or 0.0,
        # max/min devolvem o PRIMEIRO extremo encontrado (após a ordenação)
        maior_aumento=max(aumentos, key=lambda it: acc.variacao(it) or 0.0) if aumentos else None,
        maior_reducao=min(reducoes, key=lambda it: acc.variacao(it) or 0.0) if reducoes else None,
    )

    logger.debug(
        "Comparação %s: %s x %s -> %d chave(s) (novos=%d, removidos=%d, aumentaram=%d, diminuiram=%d, estaveis=%d)",
        acc.tipo, nome_base, nome_comparacao, len(items),
        resumo["itens_novos"], resumo["itens_removidos"], resumo["itens_aumentaram"],
        resumo["itens_diminuiram"], resumo["itens_estaveis"],
    )

    return ResultadoComparacao(
        tipo=acc.tipo,
        nome_base=nome_base,
        nome_comparacao=nome_comparacao,
        items=items,
        resumo=resumo,
    )


def comparar_tpu(
    base: Sequence[TPUEntry],
    comparacao: Sequence[TPUEntry],
    nome_base: str,
    nome_comparacao: str,
    *,
    limiares: Limiares = LIMIARES_PADRAO,
) -> ResultadoComparacao:
    """Compara duas TPUs por código; status pela variação do preço unitário."""
    return comparar(base, comparacao, nome_base, nome_comparacao, ACESSORES_TPU, limiares=limiares)


def comparar_medicoes(
    base: Sequence[MedicaoEntry],
    comparacao: Sequence[MedicaoEntry],
    nome_base: str,
    nome_comparacao: str,
    *,
    limiares: Limiares = LIMIARES_PADRAO,
    politica_preco: PoliticaPreco = "primeiro",
) -> ResultadoComparacao:
    """
    Compara dois períodos de medição por item (ou descrição). Linhas
    repetidas são somadas; status pela variação de quantidade (ou de valor
    total quando a quantidade não é comparável).
    """
    return comparar(
        base, comparacao, nome_base, nome_comparacao, ACESSORES_MEDICAO,
        limiares=limiares, politica_preco=politica_preco,
    )


# =====================================================================
# Formatação
# =====================================================================

_ROTULOS: Dict[str, str] = {
    "novo": "Novo",
    "removido": "Removido",
    "aumentou": "Aumentou",
    "diminuiu": "Diminuiu",
    "estavel": "Estável",
}


def formatar_variacao(valor: Optional[float]) -> str:
    if valor is None:
        return "-"
    sinal = "+" if valor >= 0 else ""
    return f"{sinal}{valor:.2f}%"


def rotulo_status(status: str) -> str:
    return _ROTULOS.get(status, status)
