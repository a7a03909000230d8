"""
storefront/utils/constants.py

Purpose: Centralized static content

- All user-facing messages
- Menu and button labels
- Escape, skip and confirmation tokens

(Prevents hardcoding across the codebase)
"""

# ============================================================
# MENU LABELS (reply keyboard)
# ============================================================

CATALOG_LABEL = "🛍 Catalog"
CART_LABEL = "🛒 Cart"
MY_ORDERS_LABEL = "📦 My orders"
ADMIN_LABEL = "⚙️ Admin panel"
HELP_LABEL = "ℹ️ Help"
INFO_LABEL = "🏪 About us"
SUPPORT_LABEL = "📞 Support"
CANCEL_LABEL = "❌ Cancel"
BACK_LABEL = "⬅️ Back"
SHARE_PHONE_LABEL = "📱 Share phone number"
SKIP_LABEL = "⏭ Skip"

# ============================================================
# TOKENS
# ============================================================

RESTART_COMMAND = "/start"

# Always reset the conversation to NORMAL, whatever step the user is on.
# Compared case-insensitively.
ESCAPE_TOKENS = frozenset({
    "cancel",
    "back",
    "/cancel",
    "/back",
    CANCEL_LABEL.casefold(),
    BACK_LABEL.casefold(),
    "отмена",
    "назад",
    RESTART_COMMAND,
})

SKIP_TOKENS = frozenset({"-", "skip", "/skip", SKIP_LABEL.casefold(), "пропустить"})
YES_TOKENS = frozenset({"yes", "y", "ok", "confirm", "да", "✅ confirm"})
NO_TOKENS = frozenset({"no", "n", "нет"})

# ============================================================
# GENERAL
# ============================================================

WELCOME_MESSAGE = """👋 <b>Welcome to the shop, {name}!</b>

Browse the 🛍 <b>Catalog</b>, add what you like to the 🛒 <b>Cart</b> and check out in a few taps.

Type <b>cancel</b> at any time to stop what you are doing."""

HELP_MESSAGE = """ℹ️ <b>How it works</b>

🛍 <b>Catalog</b> - browse products by category
🛒 <b>Cart</b> - review, change quantities, check out
📦 <b>My orders</b> - see the status of your orders

Commands: /start, /catalog, /cart, /orders, /info, /support, /help
Type <b>cancel</b> to leave any step."""

MAIN_MENU_MESSAGE = "🏠 Main menu"
GENERIC_ERROR_MESSAGE = "❌ Something went wrong. Please try again, or type <b>cancel</b> to start over."
ACCESS_DENIED_MESSAGE = "⛔ You don't have permission to do that."
WIZARD_CANCELLED_MESSAGE = "↩️ Cancelled. Back to the main menu."
SESSION_EXPIRED_MESSAGE = "⌛ Your previous step timed out and was cancelled."
UNKNOWN_INPUT_MESSAGE = "🤔 I didn't understand that. Use the menu below."
STALE_BUTTON_MESSAGE = "This button is no longer active."
NOT_FOUND_MESSAGE = "⚠️ {what}."
WIZARD_ABORTED_MESSAGE = "⚠️ {what}. The current operation was cancelled."

# ============================================================
# CATALOG
# ============================================================

CATALOG_EMPTY_MESSAGE = "📭 The catalog is empty for now. Please check back later."
CHOOSE_CATEGORY_MESSAGE = "🛍 <b>Choose a category:</b>"
CATEGORY_EMPTY_MESSAGE = "📭 No products in <b>{category}</b> yet."
CATEGORY_PAGE_MESSAGE = "📄 <b>{category}</b>: page {page} of {pages}"
NO_MORE_PRODUCTS_MESSAGE = "That's everything in this category."
OUT_OF_STOCK_MESSAGE = "😔 <b>{product}</b> is out of stock."

# ============================================================
# CART
# ============================================================

CART_EMPTY_MESSAGE = "🛒 Your cart is empty."
CART_HEADER = "🛒 <b>Your cart</b>"
CART_TOTAL = "💰 <b>Total: {total}</b>"
ADDED_TO_CART_MESSAGE = "✅ Added to cart: {product}"
ADD_TO_CART_FAILED_MESSAGE = "⚠️ Can't add more of {product}: only {stock} in stock."
CART_UPDATE_FAILED_MESSAGE = "⚠️ Not enough stock for that quantity."
CART_CLEARED_MESSAGE = "🗑 Cart cleared."
CART_LINE_REMOVED_MESSAGE = "🗑 Removed from cart."

# ============================================================
# CHECKOUT
# ============================================================

ASK_PHONE_MESSAGE = "📱 Please share your phone number (button below) or type it, e.g. +7 900 123-45-67."
INVALID_PHONE_MESSAGE = "❌ That doesn't look like a phone number. It should have 7 to 15 digits."
ASK_ADDRESS_MESSAGE = "🏠 Please enter the delivery address."
ASK_ADDRESS_SAVED_MESSAGE = "🏠 Please enter the delivery address, or tap your last one below."
EMPTY_ADDRESS_MESSAGE = "❌ The address can't be empty."
ASK_COMMENT_MESSAGE = "💬 Any comment for the order? Send <b>-</b> to skip."
CONFIRM_ORDER_MESSAGE = """🧾 <b>Please confirm your order</b>

{items}

💰 <b>Total: {total}</b>
📱 {phone}
🏠 {address}
💬 {comment}"""
CONFIRM_HINT_MESSAGE = "Tap ✅ Confirm or ❌ Cancel (or answer yes / no)."
ORDER_PLACED_MESSAGE = "🎉 Thank you! Your order {numbers} has been placed. We'll keep you posted."
ORDER_ABORTED_MESSAGE = "❌ Order cancelled. Your cart is unchanged."
NOTHING_TO_CONFIRM_MESSAGE = "There is no order waiting for confirmation."
NOTHING_TO_CHECKOUT_MESSAGE = "🛒 Your cart is empty, there is nothing to check out."
STOCK_CHANGED_MESSAGE = "⚠️ {reason} Please review your cart and try again."

CONFIRM_BUTTON = "✅ Confirm"
CANCEL_BUTTON = "❌ Cancel"

# ============================================================
# ORDERS
# ============================================================

NO_ORDERS_MESSAGE = "📦 You have no orders yet."
ORDERS_HEADER = "📦 <b>Orders</b> (page {page} of {pages})"
ADMIN_NO_ORDERS_MESSAGE = "📦 No orders yet."
ORDER_STATUS_CHANGED_MESSAGE = "📦 Order #{order_id} is now <b>{status}</b>."
ORDER_TRANSITION_FAILED_MESSAGE = "⚠️ Order #{order_id} is {status}; it can't be {action}."
NEW_ORDER_NOTIFICATION = """🆕 <b>New order #{order_id}</b>

👤 {customer}
📱 {phone}
🏠 {address}
💬 {comment}

{items}

💰 <b>Total: {total}</b>"""

# ============================================================
# ADMIN
# ============================================================

ADMIN_PANEL_MESSAGE = "⚙️ <b>Admin panel</b>"
ADMIN_PRODUCTS_HEADER = "📦 <b>Products</b> (page {page} of {pages}). Tap one to edit."
ADMIN_CATEGORIES_HEADER = "🗂 <b>Categories</b>. Tap one to edit."
NO_PRODUCTS_MESSAGE = "📭 No products yet."
NO_CATEGORIES_MESSAGE = "📭 No categories yet."

# Add product wizard
ASK_PRODUCT_NAME = "🆕 <b>New product</b>\n\nEnter the product name:"
ASK_PRODUCT_PRICE = "💰 Enter the price (e.g. 199.90):"
ASK_PRODUCT_STOCK = "📦 Enter the quantity in stock:"
ASK_PRODUCT_CATEGORY = "🗂 Choose a category (send its number or tap it):\n\n{categories}"
ASK_PRODUCT_DESCRIPTION = "📝 Enter the product description:"
ASK_PRODUCT_IMAGE = "🖼 Send a photo or an image URL, or <b>-</b> to skip."
INVALID_IMAGE_MESSAGE = "❌ Send a photo, an http(s) image URL, or <b>-</b> to skip."
PRODUCT_CREATED_MESSAGE = "✅ Product <b>{product}</b> created."
NO_CATEGORIES_FOR_PRODUCT = "⚠️ Create a category first, then add products to it."
NO_CATEGORIES_TO_MOVE_TO = "⚠️ There are no categories to move this product to. Pick another field."
EMPTY_VALUE_MESSAGE = "❌ This can't be empty. Please try again."
INVALID_PRICE_MESSAGE = "❌ Enter a positive price with at most two decimals, e.g. 199.90 or 199,90."
INVALID_STOCK_MESSAGE = "❌ Enter a whole number, 0 or more."
CATEGORY_PICKED_MESSAGE = "🗂 Category: <b>{category}</b>"

# Edit product wizard
EDIT_PRODUCT_MENU = """✏️ <b>Editing product #{product_id}</b>

{summary}

1. Name
2. Price
3. Stock
4. Category
5. Description
6. Image
7. 🗑 Delete product
8. 💾 Save and exit

Send a number:"""
INVALID_MENU_CHOICE = "❌ Send a number from 1 to {maximum}."
PRODUCT_SAVED_MESSAGE = "💾 Product <b>{product}</b> saved."
PRODUCT_DELETED_MESSAGE = "🗑 Product <b>{product}</b> deleted."
ASK_NEW_VALUE = "Enter the new {field}:"

# Category wizard
ASK_CATEGORY_NAME = "🆕 <b>New category</b>\n\nEnter the category name:"
ASK_CATEGORY_DESCRIPTION = "📝 Enter the category description, or <b>-</b> to skip."
DUPLICATE_CATEGORY_MESSAGE = "⚠️ A category named <b>{name}</b> already exists. Enter another name:"
CATEGORY_CREATED_MESSAGE = "✅ Category <b>{category}</b> created (/{slug})."
EDIT_CATEGORY_MENU = """✏️ <b>Editing category #{category_id}</b>

{summary}

1. Name
2. Description
3. 🗑 Delete category
4. 💾 Save and exit

Send a number:"""
CATEGORY_SAVED_MESSAGE = "💾 Category <b>{category}</b> saved."
CATEGORY_DELETED_MESSAGE = "🗑 Category <b>{category}</b> deleted."
CATEGORY_NOT_EMPTY_MESSAGE = "⚠️ <b>{category}</b> still has {count} product(s). Move or delete them first."

# Managers
ASK_MANAGER_ID = "👤 Send the chat id of the user to promote to manager. They must have talked to the bot before."
INVALID_CHAT_ID_MESSAGE = "❌ A chat id is a number, e.g. 123456789."
UNKNOWN_CHAT_MESSAGE = "⚠️ No user with chat id {chat_id} has talked to the bot yet."
MANAGER_ADDED_MESSAGE = "✅ {user} is now a manager."
PROMOTED_NOTIFICATION = "🎉 You have been granted manager access. Open the ⚙️ Admin panel from the menu."

# Users and roles
USERS_HEADER = "👥 <b>Users</b> (page {page} of {pages}, {total} in total)"
USER_LINE = "{role_icon} <code>{chat_id}</code> {name} - {role}"
ASK_ROLE_CHANGE = """🔁 Send the chat id and the new role, e.g.:

<code>123456789 MANAGER</code>

Roles: ADMIN, MANAGER, USER"""
INVALID_ROLE_CHANGE_MESSAGE = "❌ Use <code>&lt;chat id&gt; &lt;role&gt;</code>, e.g. <code>123456789 MANAGER</code>. Roles: ADMIN, MANAGER, USER."
ROLE_CHANGED_MESSAGE = "✅ {user}: role changed from {previous} to {role}."
ROLE_CHANGED_NOTIFICATION = "🔁 Your role is now <b>{role}</b>."

# ============================================================
# SHOP INFO AND SETTINGS
# ============================================================

INFO_MESSAGE = """🏪 <b>About us</b>

{about}

📞 <b>Contacts</b>
Phone: {phone}
Email: {email}
Website: {website}

🕐 <b>Working hours</b>
{hours}"""

SUPPORT_MESSAGE = """📞 <b>Support</b>

{support}

Phone: {phone}
Email: {email}

Commands: /start, /catalog, /cart, /orders, /info, /help
Type <b>cancel</b> to leave any step."""

SHOP_SETTINGS_MESSAGE = """🏪 <b>Shop settings</b>

📞 Phone: {phone}
✉️ Email: {email}
🌐 Website: {website}

🆘 Support:
{support}

ℹ️ About:
{about}

🕐 Working hours:
{hours}"""

ASK_SHOP_CONTACTS = """📞 Send the contacts on one line, separated by <b>|</b>:

<code>phone | email | website</code>

e.g. <code>+1 555 010 0000 | shop@example.com | www.example.com</code>"""
INVALID_SHOP_CONTACTS_MESSAGE = "❌ Send exactly three parts: <code>phone | email | website</code>, with a valid phone and email."
ASK_SHOP_SUPPORT = "🆘 Send the new support text:"
ASK_SHOP_ABOUT = "ℹ️ Send the new \"About us\" text:"
ASK_SHOP_HOURS = "🕐 Send the working hours. Put each line on its own line, or separate them with <code>\\n</code>."
SHOP_SETTINGS_SAVED_MESSAGE = "✅ Saved.\n\n{value}"
