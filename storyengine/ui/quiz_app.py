import os, sys, logging
import streamlit as st

# ensure project root
sys.path.append(os.path.abspath(os.path.join(__file__, "..", "..", "..")))

from storyengine.core.errors import QuizGenerationError
from storyengine.core.models import ClassLevel, NUM_QUESTIONS_OPTIONS, Operation, QuizSettings
from storyengine.core.settings import settings
from storyengine.services.quiz_runner import QuizRunner

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)
st.set_page_config(page_title="SmartCalc Kids", layout="centered")

def setup_view(runner: QuizRunner):
    st.title("SmartCalc Kids")
    st.caption("Let's make math fun!")

    if "quiz_settings" not in st.session_state:
        st.session_state.quiz_settings = QuizSettings()
    qs: QuizSettings = st.session_state.quiz_settings

    qs.level = st.radio("1. Select Your Class", list(ClassLevel), format_func=lambda l: l.value,
                        horizontal=True, index=list(ClassLevel).index(qs.level))

    st.write("2. Choose Your Challenge")
    cols = st.columns(len(Operation))
    for col, op in zip(cols, Operation):
        active = op in qs.operations
        if col.button(("✅ " if active else "") + op.value, key=f"op_{op.value}"):
            qs.toggle_operation(op)
            st.rerun()

    qs.num_questions = st.radio("3. How Many Questions?", NUM_QUESTIONS_OPTIONS, horizontal=True,
                                index=NUM_QUESTIONS_OPTIONS.index(qs.num_questions))

    if st.button("✨ Generate My Quiz!"):
        with st.spinner("Writing your questions..."):
            try:
                runner.start(qs)
            except QuizGenerationError as e:
                st.error(str(e))
                return
        st.rerun()

def quiz_view(runner: QuizRunner):
    q = runner.current_question
    st.write(f"Question {runner.index + 1} / {len(runner.quiz.questions)}")
    st.info(runner.quiz.instructions)
    st.header(f"{q.expression} = ?")

    if runner.feedback is None:
        with st.form(key=f"answer_{runner.index}"):
            answer = st.text_input("Your answer")
            submit = st.form_submit_button("Check")
        if submit:
            try:
                runner.submit(answer)
            except ValueError:
                st.warning("Please type a number.")
                return
            st.rerun()
    else:
        if runner.feedback.correct:
            st.success(runner.feedback.message)
        else:
            st.error(runner.feedback.message)
        label = "See Results" if runner.is_last_question else "Next Question"
        if st.button(label):
            runner.advance()
            st.rerun()

def results_view(runner: QuizRunner):
    result = runner.result()
    st.title(result.message)
    c1, c2, c3 = st.columns(3)
    c1.metric("Score", f"{result.score_percentage}%")
    c2.metric("Correct", result.correct_count)
    c3.metric("Total", result.total_count)

    st.subheader("Review Your Answers")
    for ans in result.answers:
        if ans.is_correct:
            st.markdown(f"✅ `{ans.question}` = {ans.user_answer}")
        else:
            st.markdown(f"❌ `{ans.question}` = ~~{ans.user_answer}~~ **{ans.correct_answer:g}**")

    if st.button("Play Again"):
        runner.restart()
        st.rerun()

def main():
    if "quiz" not in st.session_state:
        st.session_state.quiz = QuizRunner()
    runner: QuizRunner = st.session_state.quiz

    if runner.phase == "setup":
        setup_view(runner)
    elif runner.phase == "quiz":
        quiz_view(runner)
    else:
        results_view(runner)

if __name__ == "__main__":
    main()
