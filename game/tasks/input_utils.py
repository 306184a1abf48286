import pygame


SUBMIT_KEYS = {pygame.K_RETURN, pygame.K_KP_ENTER}
LEFT_KEYS = {pygame.K_LEFT, pygame.K_a}
RIGHT_KEYS = {pygame.K_RIGHT, pygame.K_d}


def is_submit(event: pygame.event.Event) -> bool:
    return event.type == pygame.KEYDOWN and event.key in SUBMIT_KEYS


def read_left_right_key(event: pygame.event.Event):
    if event.type != pygame.KEYDOWN:
        return None
    if event.key in LEFT_KEYS:
        return "LEFT"
    if event.key in RIGHT_KEYS:
        return "RIGHT"
    return None


def edit_text(event: pygame.event.Event, text: str, max_len: int = 64, digits_only: bool = False) -> str:
    """Applies a KEYDOWN/TEXTINPUT event to a single-line buffer."""
    if event.type == pygame.KEYDOWN and event.key == pygame.K_BACKSPACE:
        return text[:-1]
    if event.type != pygame.TEXTINPUT:
        return text
    incoming = event.text or ""
    if digits_only:
        incoming = "".join(ch for ch in incoming if ch.isdigit())
    return (text + incoming)[:max_len]
