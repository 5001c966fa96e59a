import tempfile, yaml, json, os
from typing import Union, Dict, Any, List
from pathlib import Path
from milestrack.recovery import FileOperationError, FatalError, CorruptionError
from milestrack.logs import get_logger

log = get_logger("io")

DATA_YAML = 0
DATA_JSON = 1

YAML_SUFFIXES = ('.yml', '.yaml')

def data_type_for(file_path : Union[Path, str]) -> int:
    """Pick the serialization format from a file suffix; anything not YAML is JSON."""
    return DATA_YAML if Path(file_path).suffix.lower() in YAML_SUFFIXES else DATA_JSON

def _cleanup(temp_path):
    if temp_path is not None and os.path.exists(temp_path):
        try:
            os.unlink(temp_path)
            log.debug(f"Cleaned up temporary file: {temp_path}")
        except OSError as cleanup_error:
            log.warning(f"Could not clean up temp file {temp_path}: {cleanup_error}")

def _create_dirs(file_path : Path):
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
    except (OSError, PermissionError) as e:
        error_msg = f"Cannot create directory {file_path.parent}: {e}"
        log.error(error_msg)
        raise FileOperationError(error_msg) from e

def dumps(data_type : int, data : Union[Dict[str, Any], List[Any]]) -> str:
    """Serialize plain data to YAML or JSON text."""
    if data_type == DATA_YAML:
        return yaml.safe_dump(data, default_flow_style=False, sort_keys=False, indent=2, allow_unicode=True)
    elif data_type == DATA_JSON:
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    raise FatalError("Unsupported Data Format")

def atomic_write(data_type : int, file_path : Union[Path, str], data : Union[Dict[str, Any], List[Any]], create_dirs : bool = False):
    """
    Serialize and save data using atomic updates.
    """
    file_path = Path(file_path)
    temp_path = None

    try:
        if create_dirs:
            _create_dirs(file_path)

        # Serialize first so a bad payload never touches the disk
        text = dumps(data_type, data)

        # Temporary file in the same directory as target for atomicity
        with tempfile.NamedTemporaryFile(mode='w', encoding='utf-8', dir=file_path.parent, prefix=f".{file_path.name}.", suffix='.tmp', delete=False) as temp_file:
            temp_path = temp_file.name
            temp_file.write(text)
            temp_file.flush()
            os.fsync(temp_file.fileno())

        os.replace(temp_path, file_path)
        log.debug(f"Successfully saved file: {file_path}")
        return True

    except (yaml.YAMLError, TypeError, ValueError) as e:
        _cleanup(temp_path)
        error_msg = (f"Data serialization failed for {file_path}. "
                    f"In-memory data may contain non-serializable types: {e}")
        log.critical(error_msg)
        raise FatalError(error_msg) from e

    except (IOError, OSError, PermissionError) as e:
        _cleanup(temp_path)
        error_msg = f"I/O error saving file {file_path}: {e}"
        log.error(error_msg)
        raise FileOperationError(error_msg) from e

def load_text(file_path : Union[Path, str]) -> str:
    """Read a text document such as a milestones markdown file."""
    file_path = Path(file_path)
    try:
        return file_path.read_text(encoding='utf-8')
    except (IOError, OSError, PermissionError) as e:
        raise FileOperationError(f"Failed to read file {file_path}: {e}") from e

def load_document(file_path : Union[Path, str]) -> Dict[str, Any]:
    """
    Load and parse a projects document from a JSON or YAML file.

    Args:
        file_path: Path to the document; ``.yml``/``.yaml`` are read as YAML.

    Returns:
        Parsed document as dict.

    Raises:
        CorruptionError: On syntax errors or when the top level is not a mapping.
        FileOperationError: When the file cannot be read.
    """
    file_path = Path(file_path)
    text = load_text(file_path)

    try:
        if data_type_for(file_path) == DATA_YAML:
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except yaml.YAMLError as e:
        raise CorruptionError(f"YAML syntax error in {file_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise CorruptionError(f"JSON syntax error in {file_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise CorruptionError(f"File {file_path} contains invalid data structure")

    return data
