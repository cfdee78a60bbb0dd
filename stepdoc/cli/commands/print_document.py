"""Print command implementation."""

import logging
import sys
from argparse import Namespace
from pathlib import Path

from stepdoc.exceptions import DefinitionError, DocumentValidationError
from stepdoc.loader import DocumentLoader


logger = logging.getLogger(__name__)


def print_document(args: Namespace) -> int:
    """
    Load a definition, validate it and write the serialized document.

    Returns:
        0 on success, 1 if the file is missing, 2 on validation errors
    """
    document_path = Path(args.document).resolve()
    if not document_path.exists():
        logger.error(f"Document file not found: {document_path}")
        return 1

    logger.info(f"Loading document: {document_path}")
    try:
        document = DocumentLoader().load(document_path)
    except DocumentValidationError as e:
        for error in e.errors:
            location = f" ({error.path})" if error.path else ""
            logger.error(f"Validation error{location}: {error.message}")
        return e.exit_code
    except DefinitionError as e:
        logger.error(f"Definition error: {e}")
        return e.exit_code

    rendered = document.to_json() + "\n" if args.format == 'json' else document.to_yaml()

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(rendered)
        logger.info(f"Wrote {args.format} document to {output_path}")
    else:
        sys.stdout.write(rendered)
    return 0
