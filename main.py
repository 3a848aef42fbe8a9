#main.py
import logging
import os
import random
import re
import time

import agents
import data_export
from pacman_rules_interface import DEFAULT_LAYOUT, Maze, PacManGame


def setup_logging(log_file="game_generation.log", level=logging.INFO):
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


def get_next_filename(directory, pacman_agent_class, ghost_agent_class, num_games):
    """
    Generate the next available filename with an incremented numerical prefix.

    Parameters:
        directory (str): Directory where CSV files are stored.
        pacman_agent_class (class): Class of the Pac-Man agent.
        ghost_agent_class (class): Class of the ghost agents.
        num_games (int): Number of games run in each file.

    Returns:
        str: The next available filename.
    """
    pattern = rf'^(\d+)-{pacman_agent_class.__name__}-vs-{ghost_agent_class.__name__}-{num_games}\.csv$'
    regex = re.compile(pattern)

    highest_num = -1

    if not os.path.exists(directory):
        os.makedirs(directory)

    for filename in os.listdir(directory):
        match = regex.match(filename)
        if match:
            highest_num = max(highest_num, int(match.group(1)))

    new_filename = f'{highest_num + 1:02d}-{pacman_agent_class.__name__}-vs-{ghost_agent_class.__name__}-{num_games}.csv'
    return os.path.join(directory, new_filename)


def run_multiple_games(num_games, pacman_agent_factory, ghost_agent_class, layout=DEFAULT_LAYOUT,
                       max_turns=500, seed=None, directory='game_datas', display=False):
    """
    Run several games and append each one's record to a fresh CSV file.

    Parameters:
        num_games (int): Number of games to run.
        pacman_agent_factory (callable): Builds a Pac-Man agent from a random.Random.
        ghost_agent_class (class): Ghost agent class, one instance per ghost.
        layout (str): Maze layout.
        max_turns (int): Tick limit per game, after which the game is a draw.
        seed (int, optional): Seed for every source of randomness in the run.
        directory (str): Where the CSV file goes.
        display (bool): Print the maze after every tick.

    Returns:
        list: The data of every game played.
    """
    rng = random.Random(seed)
    start_time = time.time()
    logging.info("Simulation started.")

    csv_filename = None
    games_data = []
    for game_id in range(1, num_games + 1):
        maze, initial_state = Maze.from_layout(layout)
        pacman_agent = pacman_agent_factory(random.Random(rng.getrandbits(32)))
        if csv_filename is None:
            csv_filename = get_next_filename(directory, pacman_agent.__class__, ghost_agent_class, num_games)
            logging.info(f"Exporting games to: {csv_filename}")
        if ghost_agent_class is agents.ChasingGhostAgent:
            ghost_agents = [ghost_agent_class() for _ in initial_state.ghosts]
        else:
            ghost_agents = [ghost_agent_class(rng=random.Random(rng.getrandbits(32)))
                            for _ in initial_state.ghosts]

        game = PacManGame(maze, initial_state, pacman_agent, ghost_agents,
                          max_turns=max_turns, game_id=game_id)
        game.run_game(display=display)

        game_data = game.get_game_data()
        data_export.write_game_to_csv(csv_filename, game_data)
        games_data.append(game_data)

        logging.info(f"Game {game_id}/{num_games} completed. Winner: {game_data['winner']}, "
                     f"points: {game_data['points']}, ticks: {game_data['number_of_ticks']}")

    elapsed_time = time.time() - start_time
    hours, rem = divmod(elapsed_time, 3600)
    minutes, seconds = divmod(rem, 60)
    logging.info(f"Simulation completed in {int(hours)}h {int(minutes)}m {int(seconds)}s.")
    return games_data


if __name__ == "__main__":
    setup_logging()

    num_games = 3
    max_depth = 6
    optimal_ghosts = True

    def pacman_agent_factory(rng):
        return agents.AlphaBetaPacManAgent(max_depth=max_depth, optimal_ghosts=optimal_ghosts, rng=rng)

    run_multiple_games(
        num_games=num_games,
        pacman_agent_factory=pacman_agent_factory,
        ghost_agent_class=agents.RandomGhostAgent,
        seed=1,
        directory='game_datas',
        display=False
    )
