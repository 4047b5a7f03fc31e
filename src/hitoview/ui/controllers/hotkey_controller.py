from __future__ import annotations
import logging
import time
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Protocol, Sequence

from PyQt6.QtCore import Qt

from hitoview import HitoviewError
from hitoview.core.models import HotkeyConfig
from hitoview.ui.helpers.persistence_utils import save_session_config

logger = logging.getLogger(__name__)

# Modifier names as stored in hotkey bindings
MODIFIER_CTRL = "Ctrl"
MODIFIER_CMD = "Cmd"
MODIFIER_ALT = "Alt"
MODIFIER_SHIFT = "Shift"

# Focus targets that receive typed text; hotkeys are not matched there
TEXT_INPUT_TARGETS = frozenset(
    {"input", "textarea", "qlineedit", "qtextedit", "qplaintextedit"}
)


def _key_code(key) -> int:
    return int(getattr(key, "value", key))


# Qt keys whose binding name differs from the typed text
_QT_KEY_NAMES: Dict[int, str] = {
    _key_code(qt_key): name
    for qt_key, name in (
        (Qt.Key.Key_Left, "ArrowLeft"),
        (Qt.Key.Key_Right, "ArrowRight"),
        (Qt.Key.Key_Up, "ArrowUp"),
        (Qt.Key.Key_Down, "ArrowDown"),
        (Qt.Key.Key_Escape, "Escape"),
        (Qt.Key.Key_Delete, "Delete"),
        (Qt.Key.Key_Backspace, "Backspace"),
        (Qt.Key.Key_Return, "Enter"),
        (Qt.Key.Key_Enter, "Enter"),
        (Qt.Key.Key_Space, " "),
        (Qt.Key.Key_Tab, "Tab"),
    )
}


class HotkeyError(HitoviewError):
    """Raised for invalid hotkey edits."""


class DuplicateHotkeyError(HotkeyError):
    """Raised when a key + modifier combination is already bound."""


@dataclass(frozen=True)
class KeyEvent:
    """A captured key press, independent of the toolkit that produced it."""

    key: str
    ctrl: bool = False
    meta: bool = False
    alt: bool = False
    shift: bool = False
    target_tag: str = ""  # focus widget kind, e.g. "input" or "QLineEdit"
    target_editable: bool = False

    def modifiers(self) -> List[str]:
        """Binding modifier names. Meta wins over Ctrl when both are held."""
        mods = []
        if self.ctrl or self.meta:
            mods.append(MODIFIER_CMD if self.meta else MODIFIER_CTRL)
        if self.alt:
            mods.append(MODIFIER_ALT)
        if self.shift:
            mods.append(MODIFIER_SHIFT)
        return mods

    @classmethod
    def from_qt(
        cls,
        key: int,
        text: str,
        modifiers: Qt.KeyboardModifier,
        target_tag: str = "",
        target_editable: bool = False,
    ) -> "KeyEvent":
        code = _key_code(key)
        name = _QT_KEY_NAMES.get(code) or text or ""
        if not name and 0 < code < 0x110000:
            name = chr(code)
        return cls(
            key=name,
            ctrl=bool(modifiers & Qt.KeyboardModifier.ControlModifier),
            meta=bool(modifiers & Qt.KeyboardModifier.MetaModifier),
            alt=bool(modifiers & Qt.KeyboardModifier.AltModifier),
            shift=bool(modifiers & Qt.KeyboardModifier.ShiftModifier),
            target_tag=target_tag,
            target_editable=target_editable,
        )


def modifiers_from_qt(modifiers: Qt.KeyboardModifier) -> List[str]:
    """Convert a Qt modifier flag set into binding modifier names."""
    return KeyEvent(
        key="",
        ctrl=bool(modifiers & Qt.KeyboardModifier.ControlModifier),
        meta=bool(modifiers & Qt.KeyboardModifier.MetaModifier),
        alt=bool(modifiers & Qt.KeyboardModifier.AltModifier),
        shift=bool(modifiers & Qt.KeyboardModifier.ShiftModifier),
    ).modifiers()


def normalize_key(key: str) -> str:
    """Single characters are stored upper-case; named keys as given."""
    return key.upper() if len(key) == 1 else key


def format_hotkey(hotkey: HotkeyConfig) -> str:
    return " + ".join(list(hotkey.modifiers) + [hotkey.key])


def is_text_input_target(event: KeyEvent) -> bool:
    return event.target_editable or event.target_tag.lower() in TEXT_INPUT_TARGETS


def same_modifiers(a: Sequence[str], b: Sequence[str]) -> bool:
    """Exact set comparison, order-insensitive."""
    return sorted(a) == sorted(b)


def hotkey_matches(hotkey: HotkeyConfig, key: str, modifiers: Sequence[str]) -> bool:
    if not hotkey.key or hotkey.key.casefold() != key.casefold():
        return False
    return same_modifiers(hotkey.modifiers, modifiers)


def default_hotkeys() -> List[HotkeyConfig]:
    """Bindings created for a directory that has none yet."""
    return [
        HotkeyConfig("hotkey_default_previous", "H", [], "previous_image"),
        HotkeyConfig("hotkey_default_next", "L", [], "next_image"),
    ]


class HotkeyContext(Protocol):
    session: object  # ViewSession
    categories: object  # CategoryController
    modal: object  # ModalController
    config_store: object  # JsonConfigStore


class HotkeyController:
    """
    Routes key presses to category and modal commands.

    Configured bindings are matched first (unless focus is in a text field);
    the viewer's built-in keys apply only while the modal is open:
      ArrowLeft / ArrowRight  previous / next image
      Escape                  hide shortcuts overlay, else close the modal
      ? or Shift+/            toggle shortcuts overlay
      Delete / Backspace      trash the current image
    """

    def __init__(self, ctx: HotkeyContext):
        self.ctx = ctx

    # --- Dispatch ---
    def find_binding(self, event: KeyEvent) -> Optional[HotkeyConfig]:
        modifiers = event.modifiers()
        for hotkey in self.ctx.session.hotkeys:
            if hotkey_matches(hotkey, event.key, modifiers):
                return hotkey
        return None

    async def handle_key_event(self, event: KeyEvent) -> bool:
        """Returns True when the key was consumed."""
        if not is_text_input_target(event):
            hotkey = self.find_binding(event)
            if hotkey is not None and hotkey.action:
                await self.execute_action(hotkey.action)
                return True
        if self.ctx.session.is_modal_open:
            return await self._handle_modal_key(event)
        return False

    async def execute_action(self, action: str) -> bool:
        """Run one action string. Unknown actions are logged and ignored."""
        if not action:
            return False
        if action == "next_image":
            await self.ctx.modal.show_next()
            return True
        if action == "previous_image":
            await self.ctx.modal.show_previous()
            return True
        if action == "delete_image_and_next":
            await self.ctx.modal.delete_current_image()
            return True

        # Longest prefix first: toggle_category_next_ also starts with toggle_category_
        if action.startswith("toggle_category_next_"):
            category_id = action[len("toggle_category_next_"):]
            await self.ctx.categories.toggle_on_modal(category_id)
            await self.ctx.modal.show_next()
            return True
        if action.startswith("toggle_category_"):
            await self.ctx.categories.toggle_on_modal(action[len("toggle_category_"):])
            return True
        if action.startswith("assign_category_"):
            # Legacy binding, behaves as toggle
            category_id = action[len("assign_category_"):]
            if (
                self.ctx.session.get_category(category_id) is None
                and category_id.endswith("_image")
            ):
                category_id = category_id[: -len("_image")]
            await self.ctx.categories.toggle_on_modal(category_id)
            return True

        logger.warning(f"Unknown hotkey action: {action}")
        return False

    # --- Binding management ---
    async def add_hotkey(
        self, key: str, modifiers: Sequence[str], action: str = ""
    ) -> HotkeyConfig:
        session = self.ctx.session
        key = self._validated_key(key, modifiers)
        existing_ids = {h.id for h in session.hotkeys}
        stamp = int(time.time() * 1000)
        while f"hotkey_{stamp}" in existing_ids:
            stamp += 1
        hotkey = HotkeyConfig(f"hotkey_{stamp}", key, list(modifiers), action)
        session.set_hotkeys(session.hotkeys + [hotkey])
        logger.info(f"Added hotkey {format_hotkey(hotkey)} -> {action or '<none>'}")
        await save_session_config(session, self.ctx.config_store)
        return hotkey

    async def update_hotkey(
        self, hotkey_id: str, key: str, modifiers: Sequence[str], action: str
    ) -> HotkeyConfig:
        session = self.ctx.session
        current = next((h for h in session.hotkeys if h.id == hotkey_id), None)
        if current is None:
            raise HotkeyError(f"Unknown hotkey: {hotkey_id}")
        key = self._validated_key(key, modifiers, exclude_id=hotkey_id)
        updated = replace(current, key=key, modifiers=list(modifiers), action=action)
        session.set_hotkeys([updated if h.id == hotkey_id else h for h in session.hotkeys])
        await save_session_config(session, self.ctx.config_store)
        return updated

    async def remove_hotkey(self, hotkey_id: str) -> bool:
        session = self.ctx.session
        remaining = [h for h in session.hotkeys if h.id != hotkey_id]
        if len(remaining) == len(session.hotkeys):
            return False
        session.set_hotkeys(remaining)
        await save_session_config(session, self.ctx.config_store)
        return True

    def is_duplicate(
        self, key: str, modifiers: Sequence[str], exclude_id: Optional[str] = None
    ) -> bool:
        return any(
            h.id != exclude_id and hotkey_matches(h, key, modifiers)
            for h in self.ctx.session.hotkeys
        )

    # --- Internal helpers ---
    def _validated_key(
        self, key: str, modifiers: Sequence[str], exclude_id: Optional[str] = None
    ) -> str:
        key = normalize_key(key or "")
        if not key:
            raise HotkeyError("Hotkey key cannot be empty")
        if self.is_duplicate(key, modifiers, exclude_id):
            combo = " + ".join(list(modifiers) + [key])
            raise DuplicateHotkeyError(f"Hotkey {combo} is already assigned")
        return key

    async def _handle_modal_key(self, event: KeyEvent) -> bool:
        modal = self.ctx.modal
        key = event.key
        if key == "ArrowLeft":
            await modal.show_previous()
        elif key == "ArrowRight":
            await modal.show_next()
        elif key == "Escape":
            if self.ctx.session.shortcuts_overlay_visible:
                modal.hide_shortcuts_overlay()
            else:
                modal.close_modal()
        elif key == "?" or (event.shift and key == "/"):
            modal.toggle_shortcuts_overlay()
        elif key in ("Delete", "Backspace"):
            await modal.delete_current_image()
        else:
            return False
        return True
