"""
CLI: hoja de calculo (CSV / Excel) -> Feishu Bitable.

Credenciales:
  --app-id / --app-secret, o las variables FEISHU_APP_ID / FEISHU_APP_SECRET
  (se aceptan desde un .env en el directorio actual). Sin credenciales el
  script termina sin llamar a Feishu.

Ejecucion:
  python scripts/sync_spreadsheet.py ventas.xlsx --app-token bascnXXXX
  python scripts/sync_spreadsheet.py ventas.csv --app-token bascnXXXX --table-id tblA --table-id tblB
  python scripts/sync_spreadsheet.py ventas.xlsx --app-token bascnXXXX --sheet Hoja2 --preview
"""

from __future__ import annotations

import argparse
import mimetypes
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

load_dotenv(Path.cwd() / ".env", override=False)

from bitable_importer.application.use_cases import SpreadsheetSyncUseCases
from bitable_importer.domain.entities import FileMetadata
from bitable_importer.infrastructure.external.feishu import (
    CancellationToken,
    FeishuClient,
    FeishuCredentials,
)
from bitable_importer.infrastructure.readers import read_rows
from bitable_importer.shared.exceptions import AppException, SyncAbortedError
from bitable_importer.shared.utils.date_utils import format_upload_time


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sincroniza una hoja de calculo hacia Feishu Bitable.")
    parser.add_argument("file", help="Archivo .csv, .xlsx o .xlsm")
    parser.add_argument("--app-token", required=True, help="Token de la app Bitable (bascn...)")
    parser.add_argument(
        "--table-id",
        action="append",
        default=[],
        help="Tabla destino; repetir para varias tablas (por defecto la primera de la app)",
    )
    parser.add_argument("--sheet", default=None, help="Hoja de Excel a leer (por defecto la primera)")
    parser.add_argument("--file-url", default=None, help="URL del archivo ya subido (rol de enlace)")
    parser.add_argument("--chunk-size", type=int, default=None, help="Registros por lote (1-500)")
    parser.add_argument("--timeout", type=float, default=None, help="Tiempo maximo total en segundos")
    parser.add_argument("--app-id", default=os.getenv("FEISHU_APP_ID"), help="App ID de Feishu")
    parser.add_argument("--app-secret", default=os.getenv("FEISHU_APP_SECRET"), help="App Secret de Feishu")
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Solo muestra la asociacion columna -> campo (no escribe en Feishu).",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()

    if not args.app_id or not args.app_secret:
        logger.error("Faltan credenciales: use --app-id/--app-secret o FEISHU_APP_ID/FEISHU_APP_SECRET")
        return 2

    path = Path(args.file)
    if not path.is_file():
        logger.error(f"No existe el archivo: {path}")
        return 2

    credentials = FeishuCredentials(app_id=args.app_id, app_secret=args.app_secret)
    cancel = CancellationToken(deadline_s=args.timeout)
    use_cases = SpreadsheetSyncUseCases(FeishuClient(credentials))
    content = path.read_bytes()

    try:
        if args.preview:
            sheet = read_rows(content, path.name, args.sheet)
            preview = use_cases.preview_matches(
                args.app_token,
                args.table_id[0] if args.table_id else None,
                sheet.columns,
                with_metadata=True,
                cancel=cancel,
            )
            for match in preview.matches:
                target = match.target_field or "-"
                logger.info(f"{match.source_column:<30} -> {target:<30} {match.similarity:.2f}")
            return 0

        if len(args.table_id) > 1:
            sheet = read_rows(content, path.name, args.sheet)
            outcomes = use_cases.sync_tables(
                args.app_token,
                args.table_id,
                sheet.columns,
                sheet.rows,
                file_metadata=FileMetadata(
                    file_name=path.name,
                    file_size=len(content),
                    file_type=mimetypes.guess_type(path.name)[0] or "",
                    file_url=args.file_url or "",
                    upload_time=format_upload_time(),
                ),
                chunk_size=args.chunk_size,
                cancel=cancel,
            )
            for outcome in outcomes:
                message = outcome.result.message if outcome.result else outcome.error.message
                log = logger.success if outcome.succeeded else logger.error
                log(f"[{outcome.table_id}] {message}")
            return 0 if all(o.succeeded for o in outcomes) else 1

        result = use_cases.sync_file(
            args.app_token,
            content,
            path.name,
            table_id=args.table_id[0] if args.table_id else None,
            sheet_name=args.sheet,
            file_url=args.file_url,
            content_type=mimetypes.guess_type(path.name)[0],
            chunk_size=args.chunk_size,
            cancel=cancel,
        )
        logger.success(f"{result.message} ({result.api_call_count} llamada(s) a batch_create)")
        return 0 if result.failed_row_count == 0 else 1

    except SyncAbortedError as e:
        logger.error(e.message)
        return 1
    except AppException as e:
        logger.error(f"{e.error_code}: {e.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
