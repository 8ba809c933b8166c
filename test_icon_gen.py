from icon_gen import SIZE, create_icon_image


def test_icon_is_a_small_transparent_square():
    img = create_icon_image()
    assert img.size == (SIZE, SIZE)
    assert img.mode == "RGBA"
    assert img.getpixel((0, 0))[3] == 0


def test_hands_follow_the_time():
    bare = create_icon_image()
    three = create_icon_image(15, 0)
    nine = create_icon_image(9, 0)
    assert three.tobytes() != bare.tobytes()
    assert three.tobytes() != nine.tobytes()
    # Hour hand of 03:00 points right of centre.
    assert three.getpixel((SIZE // 2 + 10, SIZE // 2))[:3] == (0, 0, 0)
    assert nine.getpixel((SIZE // 2 + 10, SIZE // 2))[:3] != (0, 0, 0)
