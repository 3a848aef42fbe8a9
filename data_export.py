#data_export.py
import csv
import json
import os
from enum import Enum
from typing import Dict, List, Optional, Any

from pacman_rules_interface import Location

class GameDataEncoder(json.JSONEncoder):
    """JSON encoder for the game's own types: Move members and Locations."""
    def default(self, obj):
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, Location):
            return [obj.x, obj.y]
        return super().default(obj)

def serialize_game_data(data: Any) -> Any:
    """
    Convert Move members and Locations in game data to plain values.

    Parameters:
        data: A game data dictionary, or any value nested inside one

    Returns:
        The same structure with moves as their letter and locations as [x, y]
    """
    if isinstance(data, dict):
        return {key: serialize_game_data(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [serialize_game_data(item) for item in data]
    if isinstance(data, Enum):
        return data.value
    if isinstance(data, Location):
        return [data.x, data.y]
    return data

def _serialize_row(game_data: Dict[str, Any]) -> Dict[str, Any]:
    row = serialize_game_data(game_data)
    row['moves'] = json.dumps(row.get('moves', []), cls=GameDataEncoder)
    return row

def write_game_to_csv(csv_filename: str, game_data: Dict[str, Any], fieldnames: Optional[List[str]] = None) -> None:
    """
    Append a single game's data to a CSV file. The moves log is stored as a JSON column.

    Parameters:
        csv_filename (str): The path to the CSV file
        game_data (dict): The dictionary returned by PacManGame.get_game_data()
        fieldnames (list, optional): List of CSV column names. If None, use keys from game_data
    """
    write_games_to_csv(csv_filename, [game_data], fieldnames)

def write_games_to_csv(csv_filename: str, games_data: List[Dict[str, Any]], fieldnames: Optional[List[str]] = None) -> None:
    """
    Append several games' data to a CSV file, writing the header only for a new file.

    Parameters:
        csv_filename (str): The path to the CSV file
        games_data (list): A list of dictionaries, each returned by PacManGame.get_game_data()
        fieldnames (list, optional): List of CSV column names. If None, use keys from first game_data
    """
    if not games_data:
        return

    directory = os.path.dirname(csv_filename)
    if directory:
        os.makedirs(directory, exist_ok=True)

    if fieldnames is None:
        fieldnames = list(games_data[0].keys())

    file_exists = os.path.isfile(csv_filename)
    with open(csv_filename, mode='a', newline='', encoding='utf-8') as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=fieldnames)

        if not file_exists:
            writer.writeheader()

        for game_data in games_data:
            writer.writerow(_serialize_row(game_data))
