"""Gradio layout composition for the image and chat tabs."""

from __future__ import annotations

from typing import Any

import requests

try:
    import gradio as gr
except ImportError:  # pragma: no cover
    gr = None  # type: ignore

from config.settings import AppConfig
from modules.pipelines.chat import ChatService
from modules.pipelines.text2img import Text2ImageService
from modules.services.app_state import AppState
from modules.services.history_service import GenerationHistoryService
from modules.services.storage_service import DurableStorage, StorageService
from modules.ui.callbacks import build_callbacks
from modules.ui.render import TOAST_ERROR, Toast

# Writes to the browser clipboard and reports success to the Python handler.
COPY_JS = """
async (text, copied) => {
    try {
        await navigator.clipboard.writeText(text);
        return [text, true];
    } catch (error) {
        return [text, false];
    }
}
"""

# Ctrl/Cmd+Enter submits on the visible tab, Escape clears its input and
# 1/2 switch tabs when the focus is not in a text field.
SHORTCUTS_JS = """
() => {
    const isShown = (id) => {
        const node = document.getElementById(id);
        return node !== null && node.offsetParent !== null;
    };
    const activeTab = () => (isShown("chat-tab") ? "chat" : "image");
    const inputFor = (tab) =>
        document.querySelector(tab === "chat" ? "#chat-input textarea" : "#prompt-input textarea");

    document.addEventListener("keydown", (event) => {
        const tab = activeTab();
        if ((event.ctrlKey || event.metaKey) && event.key === "Enter") {
            event.preventDefault();
            const button = document.getElementById(tab === "chat" ? "send-btn" : "generate-btn");
            if (button && !button.disabled) {
                button.click();
            }
            return;
        }
        if (event.key === "Escape") {
            const box = inputFor(tab);
            if (box) {
                box.value = "";
                box.dispatchEvent(new Event("input", { bubbles: true }));
                box.focus();
            }
            return;
        }
        const target = event.target;
        const typing = target && (target.tagName === "INPUT" || target.tagName === "TEXTAREA" || target.isContentEditable);
        if (!typing && (event.key === "1" || event.key === "2")) {
            const tabs = document.querySelectorAll("#main-tabs button[role='tab']");
            const button = tabs[Number(event.key) - 1];
            if (button) {
                button.click();
            }
        }
    });
}
"""


def _gradio_notify(toast: Toast) -> None:
    if toast.kind == TOAST_ERROR:
        gr.Warning(toast.message, duration=3)
    else:
        gr.Info(toast.message, duration=3)


def _image_outputs(view: Any) -> tuple[Any, ...]:
    image, prompt_text, items, visible = view
    return image, prompt_text, items, gr.update(visible=visible)


def build_app(config: AppConfig) -> Any:
    """Compose and return the Gradio application."""
    if gr is None:
        raise RuntimeError("Gradio is not installed; install the project dependencies first.")

    session = requests.Session()
    text_service = Text2ImageService(config, session=session)
    chat_service = ChatService(config, session=session)
    history = GenerationHistoryService(DurableStorage(config.history_path))

    cb = build_callbacks(
        config,
        _gradio_notify,
        text2img=text_service,
        chat=chat_service,
        history=history,
        storage=StorageService(config.download_dir),
    )

    def load_all(state: AppState):
        image_view, chat_view, state = cb["on_load"](state)
        return (*_image_outputs(image_view), *chat_view, state)

    def generate(prompt: str, state: AppState):
        image_view, state = cb["on_generate_image"](prompt, state)
        return (*_image_outputs(image_view), state)

    def delete(entry_id: str, state: AppState):
        image_view, state = cb["on_delete_history"](entry_id, state)
        return (*_image_outputs(image_view), "", "", state)

    def submit_message(message: str, state: AppState):
        (transcript, input_value), state = cb["on_submit_message"](message, state)
        return transcript, gr.update(value=input_value, interactive=False), gr.update(interactive=False), state

    def clear_chat(state: AppState):
        chat_view, state = cb["on_clear_chat"](state)
        return (*chat_view, state)

    def select_history(state: AppState, evt: gr.SelectData):
        return cb["on_select_history"](evt.index, state)

    def select_message(state: AppState, evt: gr.SelectData):
        return cb["on_select_message"](evt.index, state)

    def lock_image_inputs():
        return gr.update(interactive=False), gr.update(interactive=False), gr.update(visible=False)

    def unlock_image_inputs(prompt: str, state: AppState):
        return (
            gr.update(interactive=True),
            gr.update(interactive=True),
            gr.update(visible=cb["on_prompt_change"](prompt, state)),
        )

    def unlock_chat_inputs():
        return gr.update(interactive=True), gr.update(interactive=True)

    with gr.Blocks(title="AI Hub", js=SHORTCUTS_JS) as demo:
        # Session state - one instance per browser session
        app_state = gr.State(AppState(history_limit=config.history_limit))

        gr.Markdown("## AI Hub")

        with gr.Tabs(elem_id="main-tabs"):
            with gr.Tab("Image Generation", id="image", elem_id="image-tab") as image_tab:
                with gr.Row():
                    prompt = gr.Textbox(
                        label="Prompt",
                        placeholder="Describe the image you want to create",
                        scale=4,
                        elem_id="prompt-input",
                    )
                    generate_btn = gr.Button("Generate", variant="primary", scale=1, elem_id="generate-btn")
                    direct_link_btn = gr.Button("Open direct link", visible=False, scale=1)
                gr.Examples(examples=[[item] for item in config.suggested_prompts], inputs=[prompt])

                with gr.Column():
                    current_image = gr.Image(label="Generated image", type="pil", interactive=False)
                    current_prompt = gr.Textbox(label="Current prompt", interactive=False)
                    with gr.Row():
                        download_current_btn = gr.Button("Download")
                        download_file = gr.File(label="Download", interactive=False)

                with gr.Column(visible=False) as history_card:
                    gr.Markdown("### Recent images")
                    gallery = gr.Gallery(label="History", columns=5, allow_preview=False)
                    selected_id = gr.Textbox(visible=False)
                    selected_prompt = gr.Textbox(label="Selected prompt", interactive=False)
                    copied_flag = gr.Checkbox(visible=False)
                    with gr.Row():
                        copy_prompt_btn = gr.Button("Copy prompt")
                        download_history_btn = gr.Button("Download")
                        delete_btn = gr.Button("Delete", variant="stop")

            with gr.Tab("Chat", id="chat", elem_id="chat-tab") as chat_tab:
                chatbot = gr.Chatbot(type="messages", autoscroll=True, height=480)
                with gr.Row():
                    chat_input = gr.Textbox(
                        label="Message",
                        placeholder="Ask me anything",
                        scale=4,
                        elem_id="chat-input",
                    )
                    send_btn = gr.Button("Send", variant="primary", scale=1, elem_id="send-btn")
                gr.Examples(examples=[[item] for item in config.suggested_questions], inputs=[chat_input])
                selected_message = gr.Textbox(label="Selected message", interactive=False)
                message_copied_flag = gr.Checkbox(visible=False)
                with gr.Row():
                    copy_message_btn = gr.Button("Copy message")
                    clear_chat_btn = gr.Button("Clear chat")

        image_outputs = [current_image, current_prompt, gallery, history_card]

        demo.load(fn=load_all, inputs=[app_state], outputs=[*image_outputs, chatbot, chat_input, app_state])
        image_tab.select(fn=lambda state: cb["on_switch_tab"]("image", state), inputs=[app_state], outputs=[app_state])
        chat_tab.select(fn=lambda state: cb["on_switch_tab"]("chat", state), inputs=[app_state], outputs=[app_state])

        # Image generation: inputs stay disabled while a request is in flight.
        for trigger in (generate_btn.click, prompt.submit):
            trigger(
                fn=lock_image_inputs,
                outputs=[prompt, generate_btn, direct_link_btn],
                concurrency_id="image",
            ).then(
                fn=generate,
                inputs=[prompt, app_state],
                outputs=[*image_outputs, app_state],
                concurrency_id="image",
            ).then(
                fn=unlock_image_inputs,
                inputs=[prompt, app_state],
                outputs=[prompt, generate_btn, direct_link_btn],
            )

        prompt.change(
            fn=lambda text, state: gr.update(visible=cb["on_prompt_change"](text, state)),
            inputs=[prompt, app_state],
            outputs=[direct_link_btn],
        )
        direct_link_btn.click(fn=cb["on_open_direct_link"], inputs=[prompt])
        download_current_btn.click(
            fn=lambda state: cb["on_download"]("", state),
            inputs=[app_state],
            outputs=[download_file],
        )

        gallery.select(fn=select_history, inputs=[app_state], outputs=[selected_id, selected_prompt])
        copy_prompt_btn.click(
            fn=cb["on_copy_prompt"],
            inputs=[selected_prompt, copied_flag],
            js=COPY_JS,
        )
        download_history_btn.click(fn=cb["on_download"], inputs=[selected_id, app_state], outputs=[download_file])
        delete_btn.click(
            fn=delete,
            inputs=[selected_id, app_state],
            outputs=[*image_outputs, selected_id, selected_prompt, app_state],
        )

        # Chat: the user's turn is rendered before the reply is fetched.
        for trigger in (send_btn.click, chat_input.submit):
            trigger(
                fn=submit_message,
                inputs=[chat_input, app_state],
                outputs=[chatbot, chat_input, send_btn, app_state],
                concurrency_id="chat",
            ).then(
                fn=cb["on_resolve_message"],
                inputs=[app_state],
                outputs=[chatbot, app_state],
                concurrency_id="chat",
            ).then(
                fn=unlock_chat_inputs,
                outputs=[chat_input, send_btn],
            )

        chatbot.select(fn=select_message, inputs=[app_state], outputs=[selected_message])
        copy_message_btn.click(
            fn=cb["on_copy_message"],
            inputs=[selected_message, message_copied_flag],
            js=COPY_JS,
        )
        clear_chat_btn.click(fn=clear_chat, inputs=[app_state], outputs=[chatbot, chat_input, app_state])

    return demo
