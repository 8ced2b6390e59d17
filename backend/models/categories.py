from typing import List

from models.game import Category


CATEGORIES: List[Category] = [
    Category(
        name="Fruits",
        grid=[
            ["Apple", "Banana", "Cherry", "Date"],
            ["Fig", "Grape", "Lemon", "Mango"],
            ["Orange", "Papaya", "Pear", "Quince"],
            ["Kiwi", "Lychee", "Melon", "Plum"],
        ],
    ),
    Category(
        name="Animals",
        grid=[
            ["Cat", "Dog", "Horse", "Cow"],
            ["Sheep", "Pig", "Goat", "Deer"],
            ["Lion", "Tiger", "Bear", "Wolf"],
            ["Rabbit", "Fox", "Otter", "Whale"],
        ],
    ),
    Category(
        name="Things at School",
        grid=[
            ["Desk", "Chair", "Book", "Pen"],
            ["Ruler", "Map", "Clock", "Bell"],
            ["Laptop", "Teacher", "Board", "Locker"],
            ["Bus", "Uniform", "Exam", "Class"],
        ],
    ),
]
