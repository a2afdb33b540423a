import os
import logging

# permitir importar de src/
import sys
sys.path.append("src")

from medicao_obra.adapters.medicao import load_medicao
from medicao_obra.adapters.tpu import load_tpu
from medicao_obra.processor import comparar_medicoes, comparar_tpu, formatar_variacao
from medicao_obra.validators.alertas import calcular_estatisticas, gerar_alertas

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


def show_sample(name, entries: list, n=5):
    print(f"\n=== {name} ===")
    print(f"Total de linhas: {len(entries)}")
    for e in entries[:n]:
        print(
            f"- {e.get('item') or e['id']}: {e['descricao'][:60]!r} | q={e['quantidade']} "
            f"| pu={e['valor_unit']} | total={e['valor_total']} | status={e['status']}"
        )


def show_comparacao(name, res: dict, n=5):
    r = res["resumo"]
    print(f"\n=== {name}: {res['nome_base']} x {res['nome_comparacao']} ===")
    print(
        f"novos={r['itens_novos']} removidos={r['itens_removidos']} aumentaram={r['itens_aumentaram']} "
        f"diminuiram={r['itens_diminuiram']} estaveis={r['itens_estaveis']} "
        f"| variação total {formatar_variacao(r['variacao_total_geral'])}"
    )
    for it in res["items"][:n]:
        print(f"- {it['codigo']}: {it['status']} ({formatar_variacao(it['variacao_preco'] if res['tipo'] == 'tpu' else it['variacao_quantidade'])})")


def main():
    # ajuste os nomes dos arquivos conforme os seus na pasta data/
    med_jan = os.path.join("data", "MEDICAO_2025_01.xlsx")
    med_fev = os.path.join("data", "MEDICAO_2025_02.xlsx")
    tpu_a = os.path.join("data", "TPU_DER_2024_07.xlsx")
    tpu_b = os.path.join("data", "TPU_DER_2025_01.xlsx")

    # TESTE MEDIÇÃO
    try:
        jan = load_medicao(med_jan)
        fev = load_medicao(med_fev)
        show_sample("MEDIÇÃO jan", jan)
        stats = calcular_estatisticas(fev)
        print(f"\nfev: erros={stats['qtd_erros']} outliers={stats['qtd_outliers']} alertas={len(gerar_alertas(fev))}")
        show_comparacao("MEDIÇÕES", comparar_medicoes(jan, fev, "jan", "fev"))
    except Exception as e:
        print("\n[ERRO] Falha nas MEDIÇÕES:", e)

    # TESTE TPU
    try:
        a = load_tpu(tpu_a)
        b = load_tpu(tpu_b)
        show_comparacao("TPU DER-SP", comparar_tpu(a["entries"], b["entries"], "2024-07", "2025-01"))
    except Exception as e:
        print("\n[ERRO] Falha na TPU:", e)


if __name__ == "__main__":
    main()
