"""
Attachment block extraction from xenforo-dl text exports.

An exported post lists each image attachment as four lines:

    stage-plot.png
    [data:image/png;base64,iVBORw0KGgo...]
    stage-plot.png
    [https://forum.example.com/attachments/stage-plot-png.1234/]

The filename line is repeated verbatim around the inline preview, and the
last line holds the URL of the full-size file.
"""

import re
from typing import List

from .models import AttachmentBlock

# Line 3 must repeat line 1 exactly (untrimmed), hence the back-reference.
# Lines are separated by \n or \r\n; line 1 may not span lines.
ATTACHMENT_BLOCK_PATTERN = re.compile(
    r"^([^\r\n]+?)\r?\n"
    r"\[data:image/[a-zA-Z0-9.+-]+;base64,[^\]]+\]\r?\n"
    r"\1\r?\n"
    r"\[(https?://[^\]]+)\]",
    re.MULTILINE,
)


def extract_blocks(text: str) -> List[AttachmentBlock]:
    """
    Find every attachment block in a text export.

    Args:
        text: Full content of one export file

    Returns:
        AttachmentBlocks in order of appearance, with the declared name and
        URL trimmed of surrounding whitespace. Empty when nothing matches.

    Example:
        blocks = extract_blocks(Path("thread.txt").read_text(encoding="utf-8"))
        for block in blocks:
            print(block.declared_name, block.url)
    """
    return [
        AttachmentBlock(
            declared_name=match.group(1).strip(),
            url=match.group(2).strip(),
        )
        for match in ATTACHMENT_BLOCK_PATTERN.finditer(text)
    ]
