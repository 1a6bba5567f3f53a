import posixpath

VIDEO_EXTENSIONS = (".mp4", ".mkv")


def is_video_file(name: str) -> bool:
    return posixpath.splitext(name)[1] in VIDEO_EXTENSIONS


def content_type_for(name: str) -> str:
    if posixpath.splitext(name)[1] == ".mkv":
        return "video/x-matroska"
    return "video/mp4"
