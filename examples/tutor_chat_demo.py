"""Minimal demonstration of the reply pipeline."""

from tutor_core import UserIdentity, run_tutor_chat

if __name__ == "__main__":
    question = "How should I practice Bach inventions?"
    result = run_tutor_chat(question, user=UserIdentity(id="demo-user", email="demo@example.com"))
    print("User:", question)
    print(f"Tutor ({result['outcome']}):", result["assistant_message"]["content"])
