"""Callback implementations for the Gradio interface.

Every handler that reads or mutates session data takes the session's
``AppState`` as its last argument and hands it back as the last element of
its result, so Gradio can keep one state object per browser session.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from config.settings import AppConfig
from modules.pipelines.chat import ChatService
from modules.pipelines.errors import FLOW_CHAT, FLOW_IMAGE, categorize_error
from modules.pipelines.text2img import ImageResult, Text2ImageService
from modules.services.app_state import ROLE_ASSISTANT, ROLE_USER, AppState
from modules.services.history_service import GenerationHistoryService
from modules.services.storage_service import StorageService
from modules.ui.render import (
    TOAST_ERROR,
    Notifier,
    Toast,
    render_chat,
    render_current,
    render_history,
)
from modules.utils.image_utils import image_bytes

logger = logging.getLogger(__name__)

CHAT_APOLOGY = (
    "Sorry, I encountered an error while processing your message. "
    "Please try again or check if the service is available."
)
PLACEHOLDER_NOTICE = (
    "CORS restriction detected. Opening image in new tab. "
    "You can right-click and save the image from there."
)
IMAGE_LOAD_FAILED = "Failed to load image"

ImageView = Tuple[Any, str, List[Tuple[Any, str]], bool]
ChatView = Tuple[List[Dict[str, str]], str]


def build_callbacks(
    config: AppConfig,
    notify: Notifier,
    text2img: Optional[Text2ImageService] = None,
    chat: Optional[ChatService] = None,
    history: Optional[GenerationHistoryService] = None,
    storage: Optional[StorageService] = None,
    opener: Optional[Callable[[str], bool]] = None,
) -> dict[str, Any]:
    """Return a dictionary of Gradio callback functions."""

    downloads = storage or StorageService(config.download_dir)

    def _ensure_text_service() -> Text2ImageService:
        if text2img is None:
            raise RuntimeError("Image service is not configured")
        return text2img

    def _ensure_chat_service() -> ChatService:
        if chat is None:
            raise RuntimeError("Chat service is not configured")
        return chat

    def _persist(state: AppState) -> None:
        if history is not None:
            history.save(state.image_history)

    def _image_view(state: AppState) -> ImageView:
        current_image, current_prompt = render_current(state)
        failed = current_image is None and bool(current_prompt)
        if failed:
            state.current_image = None
            state.current_prompt = ""
            current_prompt = ""

        view = render_history(state.image_history, state.blobs)
        if view.broken:
            # Entries that cannot be shown cannot be selected or deleted either.
            for entry_id in view.broken:
                state.delete_image(entry_id)
            _persist(state)
            failed = True
        if failed:
            notify(Toast(IMAGE_LOAD_FAILED, TOAST_ERROR))

        state.gallery_ids = list(view.ids)
        return current_image, current_prompt, view.items, view.visible

    def _chat_view(state: AppState, input_value: str = "") -> ChatView:
        return render_chat(state.chat_history), input_value

    def _record(state: AppState, result: ImageResult) -> None:
        state.add_image(result.prompt, result.image_url)
        _persist(state)

    def on_load(state: AppState) -> Tuple[ImageView, ChatView, AppState]:
        if history is not None:
            state.restore_history(history.load())
        return _image_view(state), _chat_view(state), state

    def on_generate_image(prompt: str, state: AppState) -> Tuple[ImageView, AppState]:
        prompt = (prompt or "").strip()
        if state.is_generating_image:
            return _image_view(state), state
        if not prompt:
            notify(Toast("Please enter a prompt", TOAST_ERROR))
            return _image_view(state), state

        state.begin_image_generation()
        try:
            result = _ensure_text_service().generate(prompt, state.blobs)
            _record(state, result)
            if result.placeholder:
                notify(Toast(PLACEHOLDER_NOTICE, TOAST_ERROR))
                notify(Toast("Placeholder created! Check the new tab for your actual image."))
            else:
                notify(Toast("Image generated successfully!"))
        except Exception as exc:  # noqa: BLE001
            logger.error("Error generating image: %s", exc)
            notify(Toast(categorize_error(exc, FLOW_IMAGE), TOAST_ERROR))
        finally:
            state.end_image_generation()
        return _image_view(state), state

    def on_submit_message(message: str, state: AppState) -> Tuple[ChatView, AppState]:
        """Show the user's turn and claim the chat busy flag.

        The reply is fetched by ``on_resolve_message`` in a follow-up step.
        """
        message = (message or "").strip()
        if state.is_sending_message:
            return _chat_view(state, message), state
        if not message:
            notify(Toast("Please enter a message", TOAST_ERROR))
            return _chat_view(state), state

        state.append_message(ROLE_USER, message)
        state.begin_message_send()
        state.pending_message = message
        return _chat_view(state), state

    def on_resolve_message(state: AppState) -> Tuple[List[Dict[str, str]], AppState]:
        """Fetch the reply for the submitted message and append it."""
        message = state.pending_message
        if message is None:
            return render_chat(state.chat_history), state
        try:
            reply = _ensure_chat_service().send(message)
            state.append_message(ROLE_ASSISTANT, reply.content)
            notify(Toast("Message sent successfully!"))
        except Exception as exc:  # noqa: BLE001
            logger.error("Error sending message: %s", exc)
            state.append_message(ROLE_ASSISTANT, CHAT_APOLOGY)
            notify(Toast(categorize_error(exc, FLOW_CHAT), TOAST_ERROR))
        finally:
            state.pending_message = None
            state.end_message_send()
        return render_chat(state.chat_history), state

    def on_clear_chat(state: AppState) -> Tuple[ChatView, AppState]:
        state.clear_chat()
        notify(Toast("Chat cleared!"))
        return _chat_view(state), state

    def on_select_history(index: Any, state: AppState) -> Tuple[str, str]:
        """Map a gallery position to ``(entry_id, prompt)``."""
        try:
            entry_id = state.gallery_ids[int(index)]
        except (TypeError, ValueError, IndexError):
            return "", ""
        entry = state.find_image(entry_id)
        return (entry.id, entry.prompt) if entry is not None else ("", "")

    def on_delete_history(entry_id: str, state: AppState) -> Tuple[ImageView, AppState]:
        if entry_id and state.delete_image(entry_id) is not None:
            _persist(state)
            notify(Toast("Image removed from history"))
        return _image_view(state), state

    def on_select_message(index: Any, state: AppState) -> str:
        """Return the transcript text at ``index`` for copying."""
        if isinstance(index, (list, tuple)):
            index = index[0] if index else None
        try:
            return state.chat_history[int(index)].content
        except (TypeError, ValueError, IndexError):
            return ""

    def _on_copy(text: str, copied: bool, label: str) -> None:
        if copied and text:
            notify(Toast(f"{label} copied to clipboard!"))
        else:
            logger.warning("Clipboard write failed for %s", label.lower())
            notify(Toast(f"Failed to copy {label.lower()}", TOAST_ERROR))

    def on_copy_prompt(text: str, copied: bool) -> None:
        _on_copy(text, copied, "Prompt")

    def on_copy_message(text: str, copied: bool) -> None:
        _on_copy(text, copied, "Message")

    def on_download(entry_id: str, state: AppState) -> Optional[str]:
        """Save the selected history image (or the current one) for download."""
        if entry_id:
            entry = state.find_image(entry_id)
            image_url = entry.image_url if entry else None
            prompt = entry.prompt if entry else ""
        else:
            image_url, prompt = state.current_image, state.current_prompt
        if not image_url:
            return None
        try:
            path = downloads.save_image(image_bytes(image_url, state.blobs), prompt)
        except (LookupError, OSError, ValueError) as exc:
            logger.error("Error downloading image: %s", exc)
            notify(Toast("Failed to download image", TOAST_ERROR))
            return None
        notify(Toast("Image downloaded!"))
        return str(path)

    def on_open_direct_link(prompt: str) -> None:
        prompt = (prompt or "").strip()
        if not prompt:
            return
        service = _ensure_text_service()
        open_url = opener or service.opener
        open_url(service.direct_url(prompt))
        notify(Toast("Direct link opened in new tab!"))

    def on_prompt_change(prompt: str, state: AppState) -> bool:
        """Return whether the direct-link button should be shown."""
        return bool((prompt or "").strip()) and not state.is_generating_image

    def on_switch_tab(tab: str, state: AppState) -> AppState:
        state.active_tab = tab
        return state

    return {
        "on_load": on_load,
        "on_generate_image": on_generate_image,
        "on_submit_message": on_submit_message,
        "on_resolve_message": on_resolve_message,
        "on_clear_chat": on_clear_chat,
        "on_select_history": on_select_history,
        "on_delete_history": on_delete_history,
        "on_select_message": on_select_message,
        "on_copy_prompt": on_copy_prompt,
        "on_copy_message": on_copy_message,
        "on_download": on_download,
        "on_open_direct_link": on_open_direct_link,
        "on_prompt_change": on_prompt_change,
        "on_switch_tab": on_switch_tab,
    }
