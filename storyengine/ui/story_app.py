import os, sys, logging
import streamlit as st

# ensure project root
sys.path.append(os.path.abspath(os.path.join(__file__, "..", "..", "..")))

from storyengine.core.errors import InvalidStoryAction, StoryFailure
from storyengine.core.models import PresentationMode, StoryStep
from storyengine.core.settings import settings
from storyengine.services.ollama_client import ollama_client
from storyengine.services.story_controller import StoryController

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)
st.set_page_config(page_title="Story Engine AI", layout="wide")

def run(action, *args):
    """Run one controller operation; failures end up in controller.error."""
    try:
        action(*args)
    except StoryFailure as e:
        logger.warning("%s (history %s)", e.message, e.outcome.value)
    except InvalidStoryAction as e:
        st.warning(str(e))
        return
    st.rerun()

def sidebar(ctrl: StoryController):
    st.sidebar.title("Story Engine AI")
    st.sidebar.write(f"- **Ollama Host:** `{settings.ollama_host}`")
    st.sidebar.write(f"- **Model:** `{settings.ollama_model}`")
    if st.sidebar.button("Check connection"):
        if ollama_client.is_available():
            st.sidebar.success("Ollama is reachable")
        else:
            st.sidebar.error("Ollama is not reachable")

    if ctrl.has_story:
        if st.sidebar.button("▶️ Play", disabled=ctrl.mode == PresentationMode.PLAYING):
            ctrl.show(PresentationMode.PLAYING)
            st.rerun()
        if st.sidebar.button("📖 History", disabled=ctrl.mode == PresentationMode.HISTORY):
            ctrl.show(PresentationMode.HISTORY)
            st.rerun()
    if st.sidebar.button("🔄 New Story"):
        ctrl.reset()
        st.rerun()

def setup_view(ctrl: StoryController):
    st.header("Create Your Story")
    st.caption("Define the hero and the world to begin your adventure.")
    with st.form("setup"):
        protagonist = st.text_input("The Protagonist", value="A brave little rabbit")
        setting = st.text_input("The Setting", value="A tropical jungle forest")
        submit = st.form_submit_button("Begin Adventure")
    if submit:
        with st.spinner("Generating world..."):
            run(ctrl.start_story, protagonist, setting)

def playing_view(ctrl: StoryController):
    step = ctrl.current_step
    st.image(step.image_reference, caption=step.image_prompt_text, use_container_width=True)
    st.write(step.narrative_text)

    if not step.is_decided:
        st.subheader("What happens next?")
        for i, choice in enumerate(step.choices):
            if st.button(f"{i + 1}. {choice}", key=f"choice_{step.id}_{i}"):
                with st.spinner("The next chapter is being written..."):
                    run(ctrl.select_choice, i)
    else:
        st.info(f"You chose: {step.selected_choice}")
        if st.button("Continue the story"):
            with st.spinner("The next chapter is being written..."):
                run(ctrl.resume)

def history_step(ctrl: StoryController, index: int, step: StoryStep):
    with st.container(border=True):
        cols = st.columns([1, 3])
        cols[0].image(step.image_reference, use_container_width=True)
        cols[1].write(step.narrative_text)
        cols[1].markdown(f"**Decision made:** {step.selected_choice or 'Awaiting decision...'}")

        alternatives = ctrl.editable_choices(index)
        is_last = index == len(ctrl.history) - 1
        if alternatives and not is_last:
            with st.expander("Change this decision"):
                for i in alternatives:
                    if st.button(f"{i + 1}. {step.choices[i]}", key=f"edit_{step.id}_{i}"):
                        with st.spinner("Rewriting the story from here..."):
                            run(ctrl.edit_choice, index, i)

def history_view(ctrl: StoryController):
    st.header("Your Story So Far")
    st.caption("Review your adventure and change past decisions to explore new timelines.")
    for i, step in enumerate(ctrl.history):
        history_step(ctrl, i, step)

def main():
    if "story" not in st.session_state:
        st.session_state.story = StoryController()
    ctrl: StoryController = st.session_state.story

    sidebar(ctrl)
    if ctrl.error:
        st.error(ctrl.error)

    if ctrl.mode == PresentationMode.SETUP:
        setup_view(ctrl)
    elif ctrl.mode == PresentationMode.PLAYING and ctrl.current_step:
        playing_view(ctrl)
    elif ctrl.mode == PresentationMode.HISTORY:
        history_view(ctrl)

if __name__ == "__main__":
    main()
