import argparse
import os
import sys
from typing import Iterable, List, Optional

import pandas as pd

from pharos.client import ApiError, PharosClient, DEFAULT_API_URL

# Palabras clave para detectar encabezados (es / pt / en)
DATE_KEYS = ["fecha", "data", "date"]
DESC_KEYS = ["descripción", "descripcion", "descrição", "descricao", "histórico", "historico", "description"]
AMT_KEYS = ["importe", "monto", "valor", "amount"]

CURRENCY_MARKS = ("R$", "$")


def norm(s) -> str:
    return str(s).strip().lower()


def _mentions(cell: str, keys: Iterable[str]) -> bool:
    return any(k in cell for k in keys)


def detect_header_row(df_raw: pd.DataFrame, max_rows: int = 60) -> Optional[int]:
    """
    Índice de la fila de encabezados en una hoja leída con header=None:
    la primera que nombra fecha, descripción e importe.
    Los bancos suelen poner logo, titular y período antes de la tabla.
    """
    for i, values in enumerate(df_raw.head(max_rows).itertuples(index=False)):
        cells = [norm(v) for v in values]
        if all(any(_mentions(c, keys) for c in cells) for keys in (DATE_KEYS, DESC_KEYS, AMT_KEYS)):
            return i
    return None


def find_col(df: pd.DataFrame, keys):
    """Primera columna cuyo nombre contiene alguna clave, en el orden de keys."""
    for k in keys:
        hit = next((col for col in df.columns if k in norm(col)), None)
        if hit is not None:
            return hit
    return None


def parse_amount_series(s: pd.Series) -> pd.Series:
    """"$1,234.56" / "R$ 1,234.56" / numérico -> float (NaN si no se entiende)."""
    text = s.astype(str).str.replace(",", "", regex=False)
    for mark in CURRENCY_MARKS:
        text = text.str.replace(mark, "", regex=False)
    return pd.to_numeric(text.str.strip(), errors="coerce")


def build_items(
    df: pd.DataFrame,
    category_id: int,
    account_id: Optional[int] = None,
    credit_card_id: Optional[int] = None,
    pending: bool = False,
) -> List[dict]:
    """
    Filas del extracto -> payloads de POST /api/transactions.

    Convención del extracto:
    - cargos vienen como positivos -> gasto
    - abonos / devoluciones vienen como negativos -> ingreso
    """
    columns = {
        "date": find_col(df, DATE_KEYS),
        "description": find_col(df, DESC_KEYS),
        "amount": find_col(df, AMT_KEYS),
    }
    missing = [name for name, col in columns.items() if col is None]
    if missing:
        raise ValueError(f"Missing columns ({', '.join(missing)}), found: {list(df.columns)}")

    rows = pd.DataFrame({
        "date": pd.to_datetime(df[columns["date"]], errors="coerce", dayfirst=True),
        "description": df[columns["description"]],
        "amount": parse_amount_series(df[columns["amount"]]),
    }).dropna()
    rows = rows[rows["amount"] != 0]

    status = "pending" if pending else "confirmed"
    return [
        {
            "type": "expense" if amount > 0 else "income",
            "amount": f"{abs(amount):.2f}",
            "description": str(description).strip(),
            "date": when.date().isoformat(),
            "categoryId": category_id,
            "accountId": account_id,
            "creditCardId": credit_card_id,
            "status": status,
        }
        for when, description, amount in rows.itertuples(index=False)
    ]


def read_statement(path: str) -> pd.DataFrame:
    raw = pd.read_excel(path, sheet_name=0, header=None)
    header_row = detect_header_row(raw)
    if header_row is None:
        raise ValueError("Could not detect the header row (date / description / amount)")

    print(f"Encabezados en la fila {header_row}")
    return pd.read_excel(path, sheet_name=0, header=header_row)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Importa un extracto .xlsx como transacciones")
    p.add_argument("file")
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--account", type=int, help="id de la cuenta")
    src.add_argument("--card", type=int, help="id de la tarjeta")
    p.add_argument("--category", type=int, required=True, help="id de la categoría")
    p.add_argument("--pending", action="store_true", help="importar como pendientes")
    p.add_argument("--api-url", default=DEFAULT_API_URL)
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    token = os.getenv("PHAROS_TOKEN", "").strip()
    if not token:
        print("ERROR: Falta PHAROS_TOKEN.")
        sys.exit(1)

    if not os.path.exists(args.file):
        print(f"ERROR: No existe el archivo: {args.file}")
        sys.exit(1)

    try:
        df = read_statement(args.file)
        items = build_items(df, args.category, args.account, args.card, args.pending)
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print(f"{len(items)} transacciones para {args.api_url}")

    client = PharosClient(args.api_url, token=token)
    uploaded = 0
    for item in items:
        try:
            client.create_transaction(item)
        except ApiError as e:
            if e.status_code == 401:
                print("ERROR: PHAROS_TOKEN rechazado por la API (401).")
                sys.exit(1)
            print(f"ERROR {e.status_code} en {item['date']} {item['description']!r}: {e.detail}")
            continue
        uploaded += 1
        if uploaded % 50 == 0:
            print(f"... {uploaded}/{len(items)}")

    print(f"Importadas {uploaded}/{len(items)}, fallidas {len(items) - uploaded}")


if __name__ == "__main__":
    main()
