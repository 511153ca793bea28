"""
Complete workflow example: Room -> Document -> Quiz -> Attempt -> Rewards

Demonstrates end-to-end integration of all system components:
1. Create a challenge room and have a second user join by code
2. Upload a study document
3. Generate a quiz from it (needs LOVABLE_API_KEY or AI_API_KEY)
4. Take the quiz and submit
5. Show XP, level, achievements and the room leaderboard
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from synapse.attempt_manager import QuizAttemptManager
from synapse.config import config, token_tracker
from synapse.models.context import UserContext
from synapse.rooms import RoomService
from synapse.utils.log import configure_logging
from synapse.utils.persistence import RecordStore

STUDY_TEXT = """
The mitochondrion is the powerhouse of the cell. It produces ATP through
cellular respiration. Mitochondria have their own DNA, inherited from the
mother. Chloroplasts, found in plant cells, carry out photosynthesis.
"""


def main():
    configure_logging()

    problems = config.validate()
    if problems:
        for problem in problems:
            print(f"Error: {problem}")
        sys.exit(1)

    store = RecordStore()  # in-memory for the demo
    rooms = RoomService(store)
    manager = QuizAttemptManager(store)

    alice = UserContext("user-alice")
    bob = UserContext("user-bob")

    # ==================== Step 1: Rooms ====================
    print("=" * 60)
    print("STEP 1: Creating a challenge room")
    print("=" * 60)

    room = rooms.create_room(alice, "Cell Biology", mode="challenge")
    rooms.join_room(bob, room.code.lower())
    print(f"Room '{room.name}' created with code {room.code}")
    print(f"Members: {[m['user_id'] for m in rooms.members(room.id)]}")
    print()

    # ==================== Step 2: Document ====================
    document = rooms.upload_document(alice, room.id, "cells.txt", STUDY_TEXT)
    print(f"Uploaded {document.name} ({len(document.content)} chars)")
    print()

    # ==================== Step 3: Quiz generation ====================
    print("=" * 60)
    print("STEP 3: Generating quiz")
    print("=" * 60)

    quiz, questions = rooms.generate_quiz(alice, room.id, document.id, difficulty="easy", question_count=5)
    for q in questions:
        print(f"  [{q.question_type}] {q.question_text}")
        for option in q.options:
            print(f"      - {option}")
    print()

    # ==================== Step 4: Attempts ====================
    print("=" * 60)
    print("STEP 4: Taking the quiz")
    print("=" * 60)

    for ctx, answer_correctly in ((alice, True), (bob, False)):
        attempt = manager.start(ctx, quiz.id)
        for q in questions:
            answer = q.correct_answer if answer_correctly else q.options[-1]
            manager.select_answer(ctx, attempt.attempt_id, q.id, answer)
        result = manager.submit(ctx, attempt.attempt_id)

        print(f"{ctx.user_id}: {result.state.score}% "
              f"({result.state.correct_count}/{result.state.total_questions})")
        print(f"  XP earned: {result.rewards.xp_earned} -> level {result.rewards.new_level}")
        for achievement in result.rewards.new_achievements:
            print(f"  Achievement unlocked: {achievement.name}")
    print()

    # ==================== Step 5: Leaderboard ====================
    print("=" * 60)
    print("STEP 5: Leaderboard")
    print("=" * 60)

    for rank, entry in enumerate(rooms.leaderboard(room.id), start=1):
        print(f"  #{rank} {entry['username']}: {entry['total_score']} "
              f"({entry['quizzes_completed']} quizzes)")
    print()

    print(token_tracker.summary())


if __name__ == "__main__":
    main()
