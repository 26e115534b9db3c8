"""CLI entry point for the HACCP registers."""

from __future__ import annotations

import argparse
import asyncio
import base64
import json
import logging
import sys
from datetime import date
from pathlib import Path

from .archive import build_archive
from .catalogs import IncomingRegistry, TemplateCatalog
from .config import HaccpConfig, load_config
from .errors import HaccpError
from .ledger import parse_date
from .lotcode import build_base_lot_code, ensure_unique
from .models import (
    SANITATION_ITEMS,
    IngredientLot,
    Sanitation,
    SemiProductTemplate,
    Temperatures,
)
from .pdf import SANITATION, TEMPERATURE, render_day, render_month
from .records import RecordBook, create_record, generate_records, random_temperature
from .settings import load_settings, save_settings

logger = logging.getLogger(__name__)

_SANITATION_FIELDS = [name for name, _ in SANITATION_ITEMS]


def _day(value: str) -> date:
    try:
        return parse_date(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"data non valida: {value!r}")


def _month(value: str) -> tuple[int, int]:
    try:
        year, month = value.split("-")
        result = int(year), int(month)
    except ValueError:
        raise argparse.ArgumentTypeError(f"mese non valido: {value!r} (atteso AAAA-MM)")
    if not 1 <= result[1] <= 12:
        raise argparse.ArgumentTypeError(f"mese non valido: {value!r}")
    return result


def _ingredient(value: str) -> IngredientLot:
    name, sep, lot = value.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(
            f"ingrediente non valido: {value!r} (atteso NOME=LOTTO)"
        )
    return IngredientLot(name.strip(), lot.strip())


def _data_url(path: str | Path) -> str:
    path = Path(path)
    mime = "image/jpeg" if path.suffix.lower() in (".jpg", ".jpeg") else "image/png"
    payload = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime};base64,{payload}"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="haccp-registri",
        description="Registri HACCP: temperature, sanificazione e semilavorati",
    )
    parser.add_argument(
        "--config", "-c", type=str, default=None, help="File di configurazione (TOML)"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log dettagliato"
    )

    sub = parser.add_subparsers(dest="command")

    # settings
    p = sub.add_parser("settings", help="Dati azienda e firma predefinita")
    p.add_argument("--name", help="Ragione sociale")
    p.add_argument("--piva", help="Partita IVA")
    p.add_argument("--address", help="Indirizzo")
    p.add_argument("--signature", metavar="IMG", help="Firma predefinita (PNG/JPEG)")

    # record
    p = sub.add_parser("record", help="Salva il registro di un giorno")
    p.add_argument("date", type=_day, help="Data (GG/MM/AAAA o AAAA-MM-GG)")
    p.add_argument("--freezer", type=float, help="Temperatura congelatore")
    p.add_argument("--fridge1", type=float, help="Temperatura frigo 1")
    p.add_argument("--fridge2", type=float, help="Temperatura frigo 2")
    p.add_argument(
        "--not-done", nargs="+", default=[], choices=_SANITATION_FIELDS,
        help="Voci di sanificazione non eseguite",
    )
    p.add_argument("--notes", default="", help="Note")
    p.add_argument("--signature", metavar="IMG", help="Firma (PNG/JPEG)")

    # records
    p = sub.add_parser("records", help="Elenca o elimina registri")
    p.add_argument("--month", type=_month, help="Filtra per mese (AAAA-MM)")
    p.add_argument("--delete", type=_day, metavar="DATE", help="Elimina un giorno")
    p.add_argument(
        "--delete-month", type=_month, metavar="AAAA-MM", help="Elimina un mese"
    )
    p.add_argument("--clear", action="store_true", help="Elimina tutti i registri")
    p.add_argument("--json", action="store_true", help="Output JSON")

    # generate
    p = sub.add_parser("generate", help="Genera registri per un periodo")
    p.add_argument("start", type=_day)
    p.add_argument("end", type=_day)
    p.add_argument("--signature", metavar="IMG", help="Firma OSA (PNG/JPEG)")

    # pdf
    p = sub.add_parser("pdf", help="Genera il PDF mensile o giornaliero")
    p.add_argument("kind", choices=[TEMPERATURE, SANITATION])
    p.add_argument("month", type=_month, help="AAAA-MM")
    p.add_argument("--day", type=int, help="Solo questo giorno")
    p.add_argument("--output", "-o", required=True, metavar="FILE")
    p.add_argument("--osa-signature", metavar="IMG", help="Firma OSA (PNG/JPEG)")

    # archive
    p = sub.add_parser("archive", help="ZIP con tutti i registri mensili")
    p.add_argument("--output", "-o", required=True, metavar="FILE")
    p.add_argument("--osa-signature", metavar="IMG", help="Firma OSA (PNG/JPEG)")

    # lot
    p = sub.add_parser("lot", help="Calcola il lotto di un semilavorato")
    p.add_argument("product")
    p.add_argument("--date", type=_day, default=None)
    p.add_argument("--ledger", metavar="CSV", help="Registro locale per l'unicità")

    # incoming
    p = sub.add_parser("incoming", help="Alimenti in ingresso")
    isub = p.add_subparsers(dest="action", required=True)
    ip = isub.add_parser("add")
    ip.add_argument("name")
    ip.add_argument("lot")
    ip.add_argument("date", type=_day)
    ip.add_argument("--supplier")
    isub.add_parser("list")
    ip = isub.add_parser("remove")
    ip.add_argument("id")
    ip = isub.add_parser("export")
    ip.add_argument("--output", "-o", required=True, metavar="FILE")

    # template
    p = sub.add_parser("template", help="Schede dei semilavorati")
    tsub = p.add_subparsers(dest="action", required=True)
    tsub.add_parser("list")
    tp = tsub.add_parser("add")
    tp.add_argument("name")
    tp.add_argument("ingredients", nargs="+")
    tp.add_argument("--category")
    tp = tsub.add_parser("remove")
    tp.add_argument("name")
    tp = tsub.add_parser("ingredients", help="Suggerimenti ingredienti")
    tp.add_argument("query", nargs="?")

    # produce
    p = sub.add_parser("produce", help="Registra una produzione (Google Drive)")
    p.add_argument("product")
    p.add_argument("--date", type=_day, required=True, help="Data produzione")
    p.add_argument("--expiry", type=_day, required=True, help="Data scadenza")
    p.add_argument(
        "--ingredient", "-i", type=_ingredient, action="append", default=[],
        metavar="NOME=LOTTO",
    )
    p.add_argument("--lot", help="Lotto prodotto (altrimenti generato)")

    # ledger-pdf
    p = sub.add_parser("ledger-pdf", help="PDF del registro semilavorati")
    p.add_argument("--output", "-o", metavar="FILE")
    p.add_argument("--upload", action="store_true", help="Carica su Google Drive")

    # sync
    p = sub.add_parser("sync", help="Google Drive")
    ssub = p.add_subparsers(dest="action", required=True)
    ssub.add_parser("login")
    sp = ssub.add_parser("month")
    sp.add_argument("month", type=_month)
    ssub.add_parser("all")
    ssub.add_parser("current")
    ssub.add_parser("incoming")
    sp = ssub.add_parser("signature", help="Carica la firma OSA")
    sp.add_argument("image")

    # schedule
    sub.add_parser("schedule", help="Aggiornamento automatico giornaliero")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config(args.config)

    try:
        match args.command:
            case "settings":
                _cmd_settings(config, args)
            case "record":
                _cmd_record(config, args)
            case "records":
                _cmd_records(config, args)
            case "generate":
                asyncio.run(_cmd_generate(config, args))
            case "pdf":
                asyncio.run(_cmd_pdf(config, args))
            case "archive":
                asyncio.run(_cmd_archive(config, args))
            case "lot":
                _cmd_lot(args)
            case "incoming":
                _cmd_incoming(config, args)
            case "template":
                _cmd_template(config, args)
            case "produce":
                asyncio.run(_cmd_produce(config, args))
            case "ledger-pdf":
                asyncio.run(_cmd_ledger_pdf(config, args))
            case "sync":
                asyncio.run(_cmd_sync(config, args))
            case "schedule":
                _cmd_schedule(config)
    except HaccpError as e:
        print(f"Errore: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Errore: {e}", file=sys.stderr)
        sys.exit(1)
    except (ImportError, FileNotFoundError) as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)


def _cmd_settings(config: HaccpConfig, args) -> None:
    path = config.storage.settings_path
    settings = load_settings(path)
    if args.name is not None:
        settings.company.name = args.name
    if args.piva is not None:
        settings.company.piva = args.piva
    if args.address is not None:
        settings.company.address = args.address or None
    if args.signature:
        settings.default_signature = _data_url(args.signature)
    save_settings(settings, path)
    c = settings.company
    print(f"Azienda: {c.name or '-'}  P.IVA: {c.piva or '-'}  {c.address or ''}")
    print(f"Firma predefinita: {'sì' if settings.default_signature else 'no'}")


def _cmd_record(config: HaccpConfig, args) -> None:
    path = config.storage.records_path
    book = RecordBook.load(path)
    settings = load_settings(config.storage.settings_path)
    signature = _data_url(args.signature) if args.signature else settings.default_signature

    def temp(value, kind):
        return value if value is not None else random_temperature(kind)

    record = create_record(
        args.date,
        signature,
        temperatures=Temperatures(
            freezer=temp(args.freezer, "freezer"),
            fridge1=temp(args.fridge1, "fridge"),
            fridge2=temp(args.fridge2, "fridge"),
        ),
        sanitation=Sanitation(**{name: False for name in args.not_done}),
        notes=args.notes,
    )
    book.save(record)
    book.dump(path)
    t = record.temperatures
    print(
        f"Registro del {record.date:%d/%m/%Y} salvato "
        f"(congelatore {t.freezer:g}°, frigo1 {t.fridge1:g}°, frigo2 {t.fridge2:g}°)"
    )


def _cmd_records(config: HaccpConfig, args) -> None:
    path = config.storage.records_path
    book = RecordBook.load(path)

    if args.clear or args.delete or args.delete_month:
        if args.clear:
            count = len(book)
            book.clear()
        elif args.delete:
            count = int(book.delete(args.delete))
        else:
            count = book.delete_month(*args.delete_month)
        book.dump(path)
        print(f"{count} registri eliminati")
        return

    records = book.by_month(*args.month) if args.month else book.all()
    if args.json:
        print(json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2))
        return
    if not records:
        print("Nessun registro trovato.")
        return
    for r in records:
        t = r.temperatures
        missing = [label for label, done in r.sanitation.items() if not done]
        status = "completa" if not missing else f"mancano: {', '.join(missing)}"
        print(
            f"  {r.date:%d/%m/%Y}  {t.freezer:>6g}° {t.fridge1:>5g}° {t.fridge2:>5g}°"
            f"  sanificazione {status}"
        )


async def _cmd_generate(config: HaccpConfig, args) -> None:
    path = config.storage.records_path
    book = RecordBook.load(path)
    settings = load_settings(config.storage.settings_path)
    signature = _data_url(args.signature) if args.signature else settings.default_signature
    try:
        count = await generate_records(book, args.start, args.end, signature or "")
    finally:
        book.dump(path)
    print(f"{count} registri generati")


def _file_signature(path: str | None):
    if not path:
        return None
    data = Path(path).read_bytes()

    async def provider() -> bytes:
        return data

    return provider


async def _cmd_pdf(config: HaccpConfig, args) -> None:
    book = RecordBook.load(config.storage.records_path)
    company = load_settings(config.storage.settings_path).company
    year, month = args.month
    provider = _file_signature(args.osa_signature)
    options = config.signature.options()

    if args.day:
        record = book.get(date(year, month, args.day))
        if record is None:
            print("Nessun registro per il giorno richiesto.", file=sys.stderr)
            sys.exit(1)
        doc = await render_day(args.kind, record, company, provider, options)
    else:
        records = book.by_month(year, month)
        if not records:
            print("Nessun registro trovato per il mese selezionato.", file=sys.stderr)
            sys.exit(1)
        doc = await render_month(
            args.kind, records, company, year, month, provider, options
        )
    Path(args.output).write_bytes(doc.content)
    print(f"PDF salvato: {args.output} ({doc.page_count} pagine)")


async def _cmd_archive(config: HaccpConfig, args) -> None:
    book = RecordBook.load(config.storage.records_path)
    if not len(book):
        print("Nessun registro da esportare.", file=sys.stderr)
        sys.exit(1)
    company = load_settings(config.storage.settings_path).company
    data = await build_archive(
        book, company, _file_signature(args.osa_signature), config.signature.options()
    )
    Path(args.output).write_bytes(data)
    print(f"Archivio salvato: {args.output} ({len(book.months())} mesi)")


def _cmd_lot(args) -> None:
    code = build_base_lot_code(args.product, args.date or date.today())
    if args.ledger:
        code = ensure_unique(code, Path(args.ledger).read_text(encoding="utf-8-sig"))
    print(code)


def _cmd_incoming(config: HaccpConfig, args) -> None:
    path = config.storage.incoming_path
    registry = IncomingRegistry.load(path)

    match args.action:
        case "add":
            item = registry.add(args.name, args.lot, args.date, args.supplier)
            registry.dump(path)
            print(f"Registrato: {item.name} lotto {item.lot_code} ({item.id})")
        case "list":
            for name, lots in registry.grouped_by_name().items():
                print(name)
                for lot in lots:
                    supplier = f"  [{lot.supplier}]" if lot.supplier else ""
                    print(
                        f"  {lot.purchase_date:%d/%m/%Y}  {lot.lot_code}{supplier}"
                        f"  ({lot.id})"
                    )
        case "remove":
            removed = registry.remove(args.id)
            registry.dump(path)
            print("Eliminato" if removed else "Nessun elemento con questo id")
        case "export":
            Path(args.output).write_text(registry.to_csv(), encoding="utf-8")
            print(f"CSV salvato: {args.output}")


def _cmd_template(config: HaccpConfig, args) -> None:
    path = config.storage.templates_path
    catalog = TemplateCatalog.load(path)

    match args.action:
        case "list":
            for t in catalog.templates():
                print(f"{t.name}  [{t.category or '-'}]: {', '.join(t.ingredients)}")
        case "add":
            catalog.add(
                SemiProductTemplate(
                    name=args.name,
                    ingredients=args.ingredients,
                    category=args.category,
                )
            )
            catalog.dump(path)
            print(f"Semilavorato aggiunto: {args.name}")
        case "remove":
            removed = catalog.remove(args.name)
            catalog.dump(path)
            print("Eliminato" if removed else "Semilavorato non trovato")
        case "ingredients":
            for name in catalog.ingredient_names(args.query):
                print(name)


def _drive_sync(config: HaccpConfig, interactive: bool = False):
    from .gdrive import GoogleDriveStore
    from .sync import RegisterSync

    company = load_settings(config.storage.settings_path).company
    store = GoogleDriveStore.from_config(config, interactive=interactive)
    return RegisterSync(
        store,
        company,
        root_folder=config.gdrive.root_folder,
        signature_folder=config.gdrive.signature_folder,
        options=config.signature.options(),
    )


def _production_ledger(config: HaccpConfig):
    from .production import ProductionLedger

    return ProductionLedger(
        _drive_sync(config),
        file_name=config.ledger.file_name,
        pdf_name=config.ledger.pdf_name,
        default_slots=config.ledger.default_slots,
    )


async def _cmd_produce(config: HaccpConfig, args) -> None:
    from .production import ProductionRequest

    registry = IncomingRegistry.load(config.storage.incoming_path)
    row = await _production_ledger(config).register(
        ProductionRequest(
            product=args.product,
            production_date=args.date,
            expiry_date=args.expiry,
            ingredients=args.ingredient,
            lot_code=args.lot,
        ),
        registry,
    )
    print(f"Registrazione salvata: {row.product} lotto {row.lot_code}")


async def _cmd_ledger_pdf(config: HaccpConfig, args) -> None:
    ledger = _production_ledger(config)
    if args.upload:
        await ledger.upload_pdf()
        print("PDF aggiornato caricato su Drive")
    if args.output:
        doc = await ledger.render_pdf()
        Path(args.output).write_bytes(doc.content)
        print(f"PDF salvato: {args.output}")


async def _cmd_sync(config: HaccpConfig, args) -> None:
    sync = _drive_sync(config, interactive=args.action == "login")
    book = RecordBook.load(config.storage.records_path)

    match args.action:
        case "login":
            await sync.store.connect()
            print("Google Drive connesso")
        case "month":
            files = await sync.upload_month(book, *args.month)
            if not files:
                print("Nessun registro trovato per il mese selezionato.")
            else:
                print(f"{len(files)} file caricati/aggiornati")
        case "all":
            count = await sync.upload_all(book)
            print(f"Tutti i registri caricati ({count} mesi)")
        case "current":
            await sync.update_current_month(book)
            print("Registri del mese aggiornati")
        case "incoming":
            registry = IncomingRegistry.load(config.storage.incoming_path)
            await sync.upload_incoming(registry, config.ledger.incoming_name)
            print("Registro alimenti in ingresso caricato")
        case "signature":
            path = Path(args.image)
            await sync.upload_signature(path.read_bytes(), path.suffix or "png")
            print("Firma OSA caricata")


def _cmd_schedule(config: HaccpConfig) -> None:
    from .scheduler import RegisterScheduler

    async def run() -> None:
        async def job() -> None:
            book = RecordBook.load(config.storage.records_path)
            await _drive_sync(config).update_current_month(book)

        scheduler = RegisterScheduler(config, job)
        scheduler.start()
        print(f"Aggiornamento automatico attivo alle {config.scheduler.time}")
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.stop()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
