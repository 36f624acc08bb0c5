"""Backup files and CSV reports built from the site document."""
import csv
import io
import json

from .utils import utc_now

BACKUP_REQUIRED_SECTIONS = ('users', 'home')
SOIL_CSV_COLUMNS = ('ID', 'Date', 'Mode', 'Score', 'Type', 'Summary', 'Issues', 'Fixes', 'Recommendations')
CSV_LIST_SEPARATOR = '; '


class BackupImportError(ValueError):
    pass


def backup_filename(moment=None):
    moment = moment or utc_now()
    return f'mothercrop-backup-{moment.strftime("%Y-%m-%d")}.json'


def export_backup(document):
    return json.dumps(document, ensure_ascii=False, indent=2)


def looks_like_backup(parsed):
    return isinstance(parsed, dict) and all(section in parsed for section in BACKUP_REQUIRED_SECTIONS)


def parse_backup(raw):
    """Decode an uploaded backup and run the structural sniff on it."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode('utf-8-sig')
        except UnicodeDecodeError as exc:
            raise BackupImportError('Failed to parse backup file') from exc
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as exc:
        raise BackupImportError('Failed to parse backup file') from exc
    if not looks_like_backup(parsed):
        raise BackupImportError('Invalid backup file')
    return parsed


def _report_block(record):
    block = record.get('en')
    if isinstance(block, dict):
        return block
    # Records saved before bilingual reports kept the fields at the top level.
    return record


def _as_list(value):
    if isinstance(value, list):
        return [str(item) for item in value]
    if value in (None, ''):
        return []
    return [str(value)]


def soil_record_row(record):
    block = _report_block(record)
    recommendations = block.get('recommendations')
    if recommendations is None:
        recommendations = block.get('crops')
    return [
        str(record.get('id', '')),
        str(record.get('date', '')),
        str(record.get('mode', '')),
        str(record.get('score', '')),
        str(block.get('type', '')),
        str(block.get('summary', '')),
        CSV_LIST_SEPARATOR.join(_as_list(block.get('issues'))),
        CSV_LIST_SEPARATOR.join(_as_list(block.get('fixes'))),
        CSV_LIST_SEPARATOR.join(_as_list(recommendations)),
    ]


def soil_history_csv(records):
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator='\n')
    writer.writerow(SOIL_CSV_COLUMNS)
    for record in records or []:
        if isinstance(record, dict):
            writer.writerow(soil_record_row(record))
    return buffer.getvalue()
