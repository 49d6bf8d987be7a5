from AppKit import (
    NSBitmapImageRep,
    NSFilenamesPboardType,
    NSPasteboard,
    NSPasteboardTypePNG,
    NSPasteboardTypeString,
    NSPasteboardTypeTIFF,
)
from Foundation import NSURL

FILE_URL_TYPE = "public.file-url"
PNG_FILE_TYPE = 4  # NSBitmapImageFileTypePNG


class PasteboardReader:
    """Reads the macOS general pasteboard."""

    def __init__(self):
        self._pasteboard = NSPasteboard.generalPasteboard()

    def _types(self) -> list:
        return list(self._pasteboard.types() or [])

    def change_count(self) -> int:
        return self._pasteboard.changeCount()

    def file_url(self) -> str | None:
        if FILE_URL_TYPE not in self._types():
            return None
        raw = self._pasteboard.stringForType_(FILE_URL_TYPE)
        if not raw:
            return None
        # Finder may hand out a file reference URL; ask Foundation for the real path
        url = NSURL.URLWithString_(raw)
        if url is not None:
            path_url = url.filePathURL()
            if path_url is not None and path_url.path():
                return str(path_url.path())
        return str(raw)

    def file_names(self) -> list[str]:
        if NSFilenamesPboardType not in self._types():
            return []
        names = self._pasteboard.propertyListForType_(NSFilenamesPboardType)
        return [str(n) for n in names] if names else []

    def image_png(self) -> bytes | None:
        types = self._types()
        if NSPasteboardTypePNG in types:
            data = self._pasteboard.dataForType_(NSPasteboardTypePNG)
            return bytes(data) if data else None
        if NSPasteboardTypeTIFF in types:
            data = self._pasteboard.dataForType_(NSPasteboardTypeTIFF)
            if not data:
                return None
            rep = NSBitmapImageRep.imageRepWithData_(data)
            png = rep.representationUsingType_properties_(PNG_FILE_TYPE, None) if rep else None
            return bytes(png) if png else None
        return None

    def text(self) -> str | None:
        if NSPasteboardTypeString not in self._types():
            return None
        text = self._pasteboard.stringForType_(NSPasteboardTypeString)
        return str(text) if text is not None else None
