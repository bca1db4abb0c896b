import hashlib


def hash_content(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def build_markdown_embed(title: str, image_url: str, video_url: str) -> str:
    # Brackets in titles would close the alt text early.
    safe_title = title.replace("[", "(").replace("]", ")")
    return f"[![{safe_title}]({image_url})]({video_url})"
