import random

import pytest

from agents import RandomGhostAgent, RandomPacManAgent
from pacman_rules_interface import (
    DEFAULT_LAYOUT,
    DOT_POINTS,
    WIN_BONUS,
    Location,
    Maze,
    Move,
    PacManGame,
    PacManState,
)


def _open_state(pacman, ghosts, dots, size=6, wrap=False):
    maze = Maze(width=size, height=size, walls=frozenset(), wrap=wrap)
    return maze, PacManState(maze=maze, pacman=pacman, ghosts=tuple(ghosts), dots=frozenset(dots))


def test_default_layout_parses() -> None:
    maze, state = Maze.from_layout(DEFAULT_LAYOUT)

    assert (maze.width, maze.height) == (20, 11)
    assert state.pacman == Location(9, 9)
    assert state.ghosts == (Location(10, 5), Location(10, 7))
    assert len(state.dots) == DEFAULT_LAYOUT.count(".")
    assert maze.is_wall(Location(0, 0))


def test_layout_errors() -> None:
    with pytest.raises(ValueError):
        Maze.from_layout("%%%\n%P\n%%%")
    with pytest.raises(ValueError):
        Maze.from_layout("%%%\n%.%\n%%%")
    with pytest.raises(ValueError):
        Maze.from_layout("%%%\n%P?\n%%%")
    with pytest.raises(ValueError):
        Maze.from_layout("")


def test_tunnel_wraps_around() -> None:
    maze, _ = Maze.from_layout(DEFAULT_LAYOUT)
    assert maze.neighbour(Location(0, 5), Move.LEFT) == Location(19, 5)
    assert maze.neighbour(Location(19, 5), Move.RIGHT) == Location(0, 5)


def test_no_wrap_stops_at_edge() -> None:
    maze, state = _open_state(Location(0, 0), [Location(5, 5)], [Location(3, 0)])
    assert maze.neighbour(Location(0, 0), Move.LEFT) is None
    assert PacManGame.get_legal_pacman_moves(state) == [Move.DOWN, Move.RIGHT]


def test_move_opposites() -> None:
    assert Move.UP.opposite is Move.DOWN
    assert Move.LEFT.opposite is Move.RIGHT
    assert Move.RIGHT.opposite.opposite is Move.RIGHT
    assert Move.NONE.opposite is Move.NONE


def test_distances() -> None:
    origin = Location(0, 0)
    others = [Location(3, 4), Location(1, 5), Location(-2, 0)]

    assert Location.manhattan_distance_to_closest(origin, others) == 2.0
    assert Location.euclidean_distance_to_closest(origin, others) == pytest.approx(2.0)
    assert Location(3, 4).euclidean_distance(origin) == pytest.approx(5.0)
    assert Location.closest(origin, others) == Location(-2, 0)
    assert Location.manhattan_distance_to_closest(origin, []) == 0.0
    assert Location.closest(origin, []) is None


def test_pacman_eats_dot_and_wins() -> None:
    _, state = _open_state(Location(2, 0), [Location(5, 5)], [Location(3, 0)])
    nxt = PacManGame.get_next_state(state, Move.RIGHT)

    assert nxt.pacman == Location(3, 0)
    assert not nxt.dots
    assert PacManGame.is_winning(nxt)
    assert PacManGame.is_final(nxt)
    # the input snapshot is untouched
    assert state.dots == frozenset({Location(3, 0)})


def test_collision_is_losing_even_on_last_dot() -> None:
    _, state = _open_state(Location(2, 0), [Location(3, 0)], [Location(3, 0)])
    nxt = PacManGame.get_next_state(state, Move.RIGHT)

    assert PacManGame.is_losing(nxt)
    assert not PacManGame.is_winning(nxt)


def test_ghost_moving_onto_pacman_is_losing() -> None:
    _, state = _open_state(Location(2, 2), [Location(2, 3)], [Location(0, 0)])
    nxt = PacManGame.get_next_state_after_ghosts(state, (Move.UP,))
    assert PacManGame.is_losing(nxt)


def test_combined_ghost_moves_is_cartesian_product() -> None:
    _, state = _open_state(Location(0, 0), [Location(2, 2), Location(4, 4)], [Location(5, 0)])
    combined = PacManGame.get_legal_combined_ghost_moves(state)

    assert len(combined) == 16
    assert len(set(combined)) == 16
    assert all(len(joint) == 2 for joint in combined)


def test_boxed_in_ghost_stays() -> None:
    walls = {Location(0, 1), Location(2, 1), Location(1, 0), Location(1, 2)}
    maze = Maze(width=3, height=3, walls=frozenset(walls), wrap=False)
    state = PacManState(maze=maze, pacman=Location(0, 0), ghosts=(Location(1, 1),), dots=frozenset({Location(2, 2)}))

    assert PacManGame.get_legal_ghost_moves(state, 0) == [Move.NONE]
    assert PacManGame.get_legal_combined_ghost_moves(state) == [(Move.NONE,)]


def test_play_move_rejects_illegal_move() -> None:
    maze, state = _open_state(Location(0, 0), [Location(5, 5)], [Location(3, 0)])
    game = PacManGame(maze, state)

    with pytest.raises(ValueError):
        game.play_move(Move.LEFT)

    game.play_move(Move.RIGHT)
    assert game.get_current_state().pacman == Location(1, 0)


def test_play_ghost_moves_validates() -> None:
    maze, state = _open_state(Location(0, 0), [Location(5, 5)], [Location(3, 0)])
    game = PacManGame(maze, state)

    with pytest.raises(ValueError):
        game.play_ghost_moves((Move.UP, Move.UP))
    with pytest.raises(ValueError):
        game.play_ghost_moves((Move.RIGHT,))


def test_points_for_dots_and_win() -> None:
    maze, state = _open_state(Location(0, 0), [Location(5, 5)], [Location(1, 0), Location(2, 0)])
    game = PacManGame(maze, state)

    game.play_move(Move.RIGHT)
    assert game.get_points() == DOT_POINTS
    game.play_move(Move.RIGHT)
    assert game.get_points() == 2 * DOT_POINTS + WIN_BONUS
    assert game.get_winner() == "PacMan"


class _WallRunner(RandomPacManAgent):
    def get_move(self, game):
        return Move.LEFT


def test_run_game_keeps_going_after_illegal_move(caplog) -> None:
    maze, state = _open_state(Location(0, 0), [Location(5, 5)], [Location(3, 3)])
    game = PacManGame(maze, state, _WallRunner(), [RandomGhostAgent(rng=random.Random(3))], max_turns=3, game_id=7)

    with caplog.at_level("WARNING"):
        game.run_game()

    assert "Pac-Man stays put" in caplog.text
    assert game.moves_log[0]['move'] is Move.NONE


def test_run_game_records_every_tick() -> None:
    maze, state = Maze.from_layout(DEFAULT_LAYOUT)
    ghosts = [RandomGhostAgent(rng=random.Random(i)) for i in range(len(state.ghosts))]
    game = PacManGame(maze, state, RandomPacManAgent(rng=random.Random(1)), ghosts, max_turns=40, game_id=1)

    winner = game.run_game()
    data = game.get_game_data()

    assert winner in ("PacMan", "Ghosts", "Draw")
    assert 1 <= game.get_time() <= 40
    assert len(data['moves']) == game.get_time()
    assert data['ghost_agents'] == "RandomGhostAgent,RandomGhostAgent"
    assert data['winner'] == winner


class _WallGhost(RandomGhostAgent):
    def get_move(self, game, index):
        return Move.LEFT


def test_ghost_agent_count_must_match_layout() -> None:
    maze, state = Maze.from_layout(DEFAULT_LAYOUT)

    with pytest.raises(ValueError, match="2 ghosts but 1 ghost agents"):
        PacManGame(maze, state, RandomPacManAgent(), [RandomGhostAgent()])

    game = PacManGame(maze, state, RandomPacManAgent(rng=random.Random(1)), max_turns=3)
    with pytest.raises(ValueError, match="2 ghosts but 0 ghost agents"):
        game.run_game()
    assert game.get_time() == 0


def test_run_game_keeps_going_after_illegal_ghost_move(caplog) -> None:
    maze, state = _open_state(Location(5, 5), [Location(0, 0)], [Location(3, 3)])
    game = PacManGame(maze, state, _WallRunner(), [_WallGhost()], max_turns=2, game_id=8)

    with caplog.at_level("WARNING"):
        game.run_game()

    assert "Invalid move Move.LEFT for ghost 0! Ghost stays put." in caplog.text
    assert game.get_current_state().ghosts == (Location(0, 0),)
    assert game.moves_log[0]['ghost_moves'] == [Move.NONE]
    assert game.get_time() == 2
