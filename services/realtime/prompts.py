"""Prompt text and canned replies for the study-break companion."""

from __future__ import annotations

from typing import List, Tuple

from models.client_messages import StudyContext

CONNECTED_MESSAGE = "Connected to your realtime study companion!"
AI_CONNECTED_MESSAGE = "The AI companion is connected. Go ahead and talk to it."
AI_SESSION_READY_MESSAGE = "Voice chat is ready. Say something!"
AUDIO_PROCESSING_MESSAGE = "Processing your voice..."
ANALYSIS_STARTED_MESSAGE = "Looking at your pictures..."

FALLBACK_REPLIES: List[str] = [
	"Nice work so far! Take a moment to stretch and refresh before the next round.",
	"You're really focused today! Don't forget to drink some water.",
	"How is studying going? Take it easy during your break.",
	"Great concentration! Keep this pace going after the break.",
]

FALLBACK_ANALYSIS = "Nice work so far! Take a moment to stretch and refresh before the next round."
FALLBACK_SUGGESTIONS: List[str] = ["Drink some water", "Rest your eyes", "Take a deep breath", "Stretch a little"]


def companion_instructions() -> str:
	"""Return the persona sent upstream in the session configuration."""
	return (
		"You are a close friend studying the same subject alongside the user in a 'study with me' session. "
		"Talk casually, tease lightly now and then, and keep replies to one or two sentences with an emoji or two. "
		"Answer in the language the user speaks.\n\n"
		"When images are provided, always comment on both of them:\n"
		"1. The webcam image shows how the user looks right now (expression, tiredness).\n"
		"2. The screenshot shows what is on their screen. This one matters most.\n\n"
		"Read the screenshot carefully: decide what is actually shown, read text and icons, and tell study "
		"from play. Cheer them on when they are studying (\"Working hard, huh!\"), and tease them gently "
		"when they are watching videos, gaming, or scrolling social media."
	)


def text_response_instructions() -> str:
	return "Reply casually, like a friend studying with the user."


def audio_response_instructions() -> str:
	return "Understand the spoken input and reply warmly. The user is on a study break, so encourage them."


def image_response_instructions() -> str:
	return "Analyze the images and give the learner encouragement and a piece of advice."


def fallback_system_prompt() -> str:
	"""Return the short persona used by the single-turn fallback completion."""
	return (
		"You are a friendly study-support character chatting with a learner on a study break. "
		"Be warm, encourage them, suggest good ways to rest, keep it to two or three sentences, "
		"and use a few emoji."
	)


def screenshot_analysis_prompt(context: StudyContext) -> str:
	"""Return the instruction text placed before the two images of an analysis turn."""
	opener = "I refreshed the screen!" if context.is_refresh_analysis else "Hey, break time!"
	subject = context.study_content or "unknown"
	minutes = context.elapsed_minutes
	elapsed = f"{minutes} min" if minutes is not None else "unknown"
	return (
		f"{opener} Check on how I'm doing.\n\n"
		"Study context:\n"
		f"- Studying: {subject}\n"
		f"- Elapsed time: {elapsed}\n\n"
		"You must comment on both images:\n"
		"1. Webcam = how I look right now\n"
		"2. Screenshot = what is on my study screen (always mention it!)\n\n"
		"Look at the text, icons and layout to work out what is really on screen. "
		"Cheer me on if I'm studying, tease me a little if I'm slacking off."
	)


def material_prompt(name: str, excerpt: str, question: str) -> str:
	"""Return the text turn used to discuss one of the learner's study materials."""
	lines = [f"Let's talk about my study material \"{name}\"."]
	if excerpt:
		lines.append(f"Here is part of it:\n{excerpt}")
	if question:
		lines.append(question)
	return "\n\n".join(lines)


def folder_prompt(folder_name: str, materials: List[Tuple[str, str]], question: str) -> str:
	"""Return the text turn used to discuss a folder of study materials.

	`materials` holds (name, excerpt) pairs; an empty excerpt lists the name only.
	"""
	lines = [f"Let's talk about my study folder \"{folder_name}\"."]
	if materials:
		entries = []
		for name, excerpt in materials:
			entries.append(f"- {name}: {excerpt}" if excerpt else f"- {name}")
		lines.append("It contains:\n" + "\n".join(entries))
	else:
		lines.append("It is empty for now.")
	if question:
		lines.append(question)
	return "\n\n".join(lines)
